import dataclasses
from typing import Any, Dict, List, Mapping, Optional

from fndeploy.kernel.contracts import (
    CodeSource,
    DesiredConfig,
    FunctionIdentity,
    ImageConfig,
    ImageRef,
    InlineCode,
    LastUpdateStatus,
    LoggingConfig,
    MutationReceipt,
    ObjectStoreRef,
    RemoteFunctionState,
    VpcConfig,
)
from fndeploy.kernel.errors import ConcurrencyConflict, ResourceNotFound

ACCOUNT_ARN_PREFIX = "arn:aws:lambda:us-east-1:123456789012:function:"

# What the service reports for fields a function was never given.
SERVICE_DEFAULTS = DesiredConfig(
    memory_size=128,
    architecture="x86_64",
    environment={},
    description="",
    vpc_config=VpcConfig(),
    layers=(),
    file_system_configs=(),
    image_config=ImageConfig(),
    logging_config=LoggingConfig(log_format="Text"),
    tags={},
)

MUTATING_METHODS = {"create_function", "update_function_code", "update_function_configuration", "publish_version"}


def _overlay(base: DesiredConfig, values: Mapping[str, Any]) -> DesiredConfig:
    return dataclasses.replace(base, **{k: v for k, v in values.items() if v is not None})


class MockFunctionService:
    """A mock implementation of FunctionService for testing."""

    def __init__(self):
        self.functions: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.get_errors: List[Exception] = []
        self.fail_on: Dict[str, Exception] = {}
        self.pending_reads_after_mutation = 0
        self.stuck_pending = False
        self._revision_counter = 0

    # --- helpers ---------------------------------------------------------

    def _next_revision(self) -> str:
        self._revision_counter += 1
        return f"rev-{self._revision_counter}"

    def _code_fields(self, code: CodeSource) -> Dict[str, Optional[str]]:
        if isinstance(code, InlineCode):
            return {"code_sha256": code.sha256, "image_uri": None}
        if isinstance(code, ObjectStoreRef):
            return {"code_sha256": code.sha256 or f"s3:{code.bucket}/{code.key}", "image_uri": None}
        if isinstance(code, ImageRef):
            return {"code_sha256": "image-digest", "image_uri": code.image_uri}
        raise TypeError(code)

    def _mutated(self, record: Dict[str, Any]) -> None:
        record["revision_id"] = self._next_revision()
        record["pending_reads"] = self.pending_reads_after_mutation

    def _check(self, method: str, record: Optional[Dict[str, Any]], revision_id: Optional[str]) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]
        if revision_id is not None and record is not None and record["revision_id"] != revision_id:
            raise ConcurrencyConflict("The Revision Id provided does not match the latest Revision Id.")

    def seed(self, name: str, config: DesiredConfig, code_sha256: str = "seeded-sha", **extra) -> RemoteFunctionState:
        self.functions[name] = {
            "config": _overlay(SERVICE_DEFAULTS, {f.name: getattr(config, f.name) for f in dataclasses.fields(config)}),
            "revision_id": self._next_revision(),
            "arn": ACCOUNT_ARN_PREFIX + name,
            "code_sha256": code_sha256,
            "image_uri": extra.get("image_uri"),
            "status": extra.get("status", LastUpdateStatus.SUCCESSFUL),
            "pending_reads": 0,
            "versions": 0,
        }
        return self.snapshot(name)

    def snapshot(self, name: str) -> RemoteFunctionState:
        record = self.functions[name]
        return RemoteFunctionState(
            config=record["config"],
            revision_id=record["revision_id"],
            arn=record["arn"],
            last_update_status=record["status"],
            code_sha256=record["code_sha256"],
            image_uri=record["image_uri"],
        )

    @property
    def mutating_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATING_METHODS]

    # --- FunctionService --------------------------------------------------

    def get_function(self, identity: FunctionIdentity) -> RemoteFunctionState:
        self.calls.append(("get_function", identity.name))
        if self.get_errors:
            raise self.get_errors.pop(0)
        record = self.functions.get(identity.name)
        if record is None:
            raise ResourceNotFound(f"Function not found: {identity.name}")
        state = self.snapshot(identity.name)
        if self.stuck_pending or record["pending_reads"] > 0:
            if record["pending_reads"] > 0:
                record["pending_reads"] -= 1
            state = dataclasses.replace(state, last_update_status=LastUpdateStatus.PENDING)
        return state

    def create_function(self, identity: FunctionIdentity, config: DesiredConfig, code: CodeSource) -> MutationReceipt:
        self.calls.append(("create_function", identity.name, config, code))
        self._check("create_function", None, None)
        values = {f.name: getattr(config, f.name) for f in dataclasses.fields(config)}
        record = {
            "config": _overlay(SERVICE_DEFAULTS, values),
            "arn": ACCOUNT_ARN_PREFIX + identity.name,
            "status": LastUpdateStatus.SUCCESSFUL,
            "versions": 0,
            **self._code_fields(code),
        }
        self._mutated(record)
        self.functions[identity.name] = record
        return MutationReceipt(arn=record["arn"], revision_id=record["revision_id"])

    def update_function_code(self, identity, code, architecture=None, revision_id=None) -> MutationReceipt:
        self.calls.append(("update_function_code", identity.name, code, architecture, revision_id))
        record = self.functions[identity.name]
        self._check("update_function_code", record, revision_id)
        record.update(self._code_fields(code))
        if architecture:
            record["config"] = dataclasses.replace(record["config"], architecture=architecture)
        self._mutated(record)
        return MutationReceipt(arn=record["arn"], revision_id=record["revision_id"])

    def update_function_configuration(self, identity, changes, revision_id=None) -> MutationReceipt:
        self.calls.append(("update_function_configuration", identity.name, dict(changes), revision_id))
        record = self.functions[identity.name]
        self._check("update_function_configuration", record, revision_id)
        record["config"] = dataclasses.replace(record["config"], **changes)
        self._mutated(record)
        return MutationReceipt(arn=record["arn"], revision_id=record["revision_id"])

    def publish_version(self, identity: FunctionIdentity) -> MutationReceipt:
        self.calls.append(("publish_version", identity.name))
        record = self.functions[identity.name]
        self._check("publish_version", record, None)
        record["versions"] += 1
        return MutationReceipt(revision_id=record["revision_id"], version=str(record["versions"]))


class MockObjectStore:
    """A mock implementation of ObjectStore for testing."""

    def __init__(self, buckets=None):
        self.buckets = set(buckets or [])
        self.objects: Dict[tuple, bytes] = {}
        self.created_buckets: List[str] = []
        self.head_calls: List[str] = []

    def bucket_exists(self, bucket: str) -> bool:
        self.head_calls.append(bucket)
        return bucket in self.buckets

    def create_bucket(self, bucket: str) -> None:
        self.created_buckets.append(bucket)
        self.buckets.add(bucket)

    def put_object(self, bucket: str, key: str, body: bytes) -> None:
        if bucket not in self.buckets:
            raise RuntimeError(f"NoSuchBucket: {bucket}")
        self.objects[(bucket, key)] = body
