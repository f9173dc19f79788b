from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple, Union


@dataclass(frozen=True)
class FunctionIdentity:
    """
    Unique key of a remote function. Immutable once a deployment begins.
    """
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("function name cannot be empty")


# ---------------------------------------------------------------------
# Code sources
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class InlineCode:
    """A zip package sent with the request itself."""
    zip_bytes: bytes = field(repr=False)
    sha256: str

    @property
    def size(self) -> int:
        return len(self.zip_bytes)


@dataclass(frozen=True)
class ObjectStoreRef:
    """A zip package previously uploaded to the object store."""
    bucket: str
    key: str
    sha256: Optional[str] = None


@dataclass(frozen=True)
class ImageRef:
    """A container image in a registry."""
    image_uri: str

    @property
    def is_digest_pinned(self) -> bool:
        return "@sha256:" in self.image_uri


CodeSource = Union[InlineCode, ObjectStoreRef, ImageRef]


# ---------------------------------------------------------------------
# Desired configuration
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class VpcConfig:
    subnet_ids: Tuple[str, ...] = ()
    security_group_ids: Tuple[str, ...] = ()
    ipv6_allowed_for_dual_stack: bool = False


@dataclass(frozen=True)
class FileSystemConfig:
    arn: str
    local_mount_path: str


@dataclass(frozen=True)
class ImageConfig:
    entry_point: Tuple[str, ...] = ()
    command: Tuple[str, ...] = ()
    working_directory: Optional[str] = None


@dataclass(frozen=True)
class LoggingConfig:
    log_format: Optional[str] = None
    application_log_level: Optional[str] = None
    system_log_level: Optional[str] = None
    log_group: Optional[str] = None


@dataclass(frozen=True)
class DesiredConfig:
    """
    Canonical function configuration.

    A field left as None means "leave the remote value untouched". An empty
    mapping for environment or tags means "clear every entry".
    """
    handler: Optional[str] = None
    runtime: Optional[str] = None
    memory_size: Optional[int] = None
    timeout: Optional[int] = None
    architecture: Optional[str] = None
    environment: Optional[Dict[str, str]] = None
    role: Optional[str] = None
    description: Optional[str] = None
    vpc_config: Optional[VpcConfig] = None
    dead_letter_target_arn: Optional[str] = None
    kms_key_arn: Optional[str] = None
    tracing_mode: Optional[str] = None
    layers: Optional[Tuple[str, ...]] = None
    file_system_configs: Optional[Tuple[FileSystemConfig, ...]] = None
    image_config: Optional[ImageConfig] = None
    ephemeral_storage: Optional[int] = None
    snap_start: Optional[str] = None
    logging_config: Optional[LoggingConfig] = None
    code_signing_config_arn: Optional[str] = None
    tags: Optional[Dict[str, str]] = None


# Fields the service changes through the code-update call rather than the
# configuration-update call.
CODE_FIELDS = ("architecture",)


# ---------------------------------------------------------------------
# Remote state
# ---------------------------------------------------------------------

class LastUpdateStatus(str, Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"


@dataclass(frozen=True)
class RemoteFunctionState:
    """
    Snapshot of a function as the service currently reports it.
    """
    config: DesiredConfig
    revision_id: str
    arn: str
    last_update_status: LastUpdateStatus = LastUpdateStatus.SUCCESSFUL
    code_sha256: Optional[str] = None
    image_uri: Optional[str] = None
    status_reason: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.last_update_status is LastUpdateStatus.SUCCESSFUL


# ---------------------------------------------------------------------
# Plan operations
# ---------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class Operation:
    identity: FunctionIdentity
    simulated: bool = False

    name = "Operation"
    mutating = True

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True, kw_only=True)
class CreateFunction(Operation):
    config: DesiredConfig
    code: CodeSource

    name = "CreateFunction"

    def describe(self) -> str:
        return f"create {self.identity.name} ({self.config.runtime or 'image'}, {self.config.handler or '-'})"


@dataclass(frozen=True, kw_only=True)
class UpdateCode(Operation):
    code: CodeSource
    architecture: Optional[str] = None
    revision_id: Optional[str] = None

    name = "UpdateCode"

    def describe(self) -> str:
        return f"update code of {self.identity.name}"


@dataclass(frozen=True, kw_only=True)
class UpdateConfiguration(Operation):
    changes: Mapping[str, Any]
    revision_id: Optional[str] = None

    name = "UpdateConfiguration"

    def describe(self) -> str:
        return f"update {', '.join(sorted(self.changes))} of {self.identity.name}"


@dataclass(frozen=True, kw_only=True)
class PublishVersion(Operation):
    name = "PublishVersion"

    def describe(self) -> str:
        return f"publish a new version of {self.identity.name}"


@dataclass(frozen=True, kw_only=True)
class NoOp(Operation):
    reason: str = "remote function already matches"

    name = "NoOp"
    mutating = False

    def describe(self) -> str:
        return self.reason


class Branch(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class DeploymentPlan:
    """
    Ordered, immutable list of operations computed once per run.
    """
    identity: FunctionIdentity
    branch: Branch
    operations: Tuple[Operation, ...]
    dry_run: bool = False
    function_arn: Optional[str] = None
    wait_before_first_mutation: bool = False

    @property
    def mutating_operations(self) -> Tuple[Operation, ...]:
        return tuple(op for op in self.operations if op.mutating)

    @property
    def is_noop(self) -> bool:
        return not self.mutating_operations


@dataclass(frozen=True)
class MutationReceipt:
    """What a mutating call reports back."""
    arn: Optional[str] = None
    revision_id: Optional[str] = None
    version: Optional[str] = None


@dataclass(frozen=True)
class DeploymentResult:
    function_arn: Optional[str]
    published_version: Optional[str]
    operations_applied: Tuple[Operation, ...]
    dry_run: bool


# ---------------------------------------------------------------------
# Collaborator ports
# ---------------------------------------------------------------------

class FunctionService(Protocol):
    """
    The remote function-execution service.
    The kernel interacts with the service ONLY through this interface.
    """

    def get_function(self, identity: FunctionIdentity) -> RemoteFunctionState:
        """
        Return the current definition. Raises ResourceNotFound when the
        function does not exist.
        """
        ...

    def create_function(self, identity: FunctionIdentity, config: DesiredConfig, code: CodeSource) -> MutationReceipt:
        ...

    def update_function_code(
        self,
        identity: FunctionIdentity,
        code: CodeSource,
        architecture: Optional[str] = None,
        revision_id: Optional[str] = None,
    ) -> MutationReceipt:
        ...

    def update_function_configuration(
        self,
        identity: FunctionIdentity,
        changes: Mapping[str, Any],
        revision_id: Optional[str] = None,
    ) -> MutationReceipt:
        """
        Apply only the given fields. Fields absent from `changes` must be
        left untouched by the service.
        """
        ...

    def publish_version(self, identity: FunctionIdentity) -> MutationReceipt:
        ...


class ObjectStore(Protocol):
    def bucket_exists(self, bucket: str) -> bool:
        ...

    def create_bucket(self, bucket: str) -> None:
        ...

    def put_object(self, bucket: str, key: str, body: bytes) -> None:
        ...
