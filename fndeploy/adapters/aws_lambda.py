"""
A concrete FunctionService backed by a boto3 "lambda" client.
This is an 'adapter' in the hexagonal architecture: all request and
response shapes of the service stay in this module.
"""
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional

from fndeploy.adapters.aws_errors import translating
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import (
    CodeSource,
    DesiredConfig,
    FileSystemConfig,
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
from fndeploy.kernel.errors import ConcurrencyConflict, DeployError

logger = get_logger(__name__)

# Tags under this prefix are managed by the provider and cannot be changed.
RESERVED_TAG_PREFIX = "aws:"


def _user_tags(tags: Mapping[str, str]) -> Dict[str, str]:
    return {k: v for k, v in tags.items() if not k.startswith(RESERVED_TAG_PREFIX)}


def _last_update_status(configuration: Dict[str, Any]) -> LastUpdateStatus:
    state = configuration.get("State")
    last_update = configuration.get("LastUpdateStatus")
    if state == "Failed" or last_update == "Failed":
        return LastUpdateStatus.FAILED
    if state == "Pending" or last_update == "InProgress":
        return LastUpdateStatus.PENDING
    return LastUpdateStatus.SUCCESSFUL


@contextmanager
def _marking_applied(applied: List[str]):
    """Record on a failure which remote calls of the same step already took effect."""
    try:
        yield
    except DeployError as exc:
        if applied:
            exc.applied = tuple(applied)
        raise


def config_from_response(configuration: Dict[str, Any], tags: Mapping[str, str], code_signing_arn: Optional[str]) -> DesiredConfig:
    """Normalize a GetFunction configuration into the canonical record."""
    vpc = configuration.get("VpcConfig") or {}
    image = (configuration.get("ImageConfigResponse") or {}).get("ImageConfig") or {}
    logging_config = configuration.get("LoggingConfig") or {}
    return DesiredConfig(
        handler=configuration.get("Handler"),
        runtime=configuration.get("Runtime"),
        memory_size=configuration.get("MemorySize"),
        timeout=configuration.get("Timeout"),
        architecture=(configuration.get("Architectures") or ["x86_64"])[0],
        environment=dict((configuration.get("Environment") or {}).get("Variables") or {}),
        role=configuration.get("Role"),
        description=configuration.get("Description", ""),
        vpc_config=VpcConfig(
            subnet_ids=tuple(sorted(vpc.get("SubnetIds") or [])),
            security_group_ids=tuple(sorted(vpc.get("SecurityGroupIds") or [])),
            ipv6_allowed_for_dual_stack=bool(vpc.get("Ipv6AllowedForDualStack", False)),
        ),
        dead_letter_target_arn=(configuration.get("DeadLetterConfig") or {}).get("TargetArn"),
        kms_key_arn=configuration.get("KMSKeyArn"),
        tracing_mode=(configuration.get("TracingConfig") or {}).get("Mode"),
        layers=tuple(layer["Arn"] for layer in configuration.get("Layers") or []),
        file_system_configs=tuple(
            FileSystemConfig(arn=fs["Arn"], local_mount_path=fs["LocalMountPath"])
            for fs in configuration.get("FileSystemConfigs") or []
        ),
        image_config=ImageConfig(
            entry_point=tuple(image.get("EntryPoint") or []),
            command=tuple(image.get("Command") or []),
            working_directory=image.get("WorkingDirectory"),
        ),
        ephemeral_storage=(configuration.get("EphemeralStorage") or {}).get("Size"),
        snap_start=(configuration.get("SnapStart") or {}).get("ApplyOn"),
        logging_config=LoggingConfig(
            log_format=logging_config.get("LogFormat"),
            application_log_level=logging_config.get("ApplicationLogLevel"),
            system_log_level=logging_config.get("SystemLogLevel"),
            log_group=logging_config.get("LogGroup"),
        ),
        code_signing_config_arn=code_signing_arn,
        tags=_user_tags(tags),
    )


def config_params(values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Request parameters for the configuration fields present in `values`.
    Fields absent from `values` are absent from the request, so the service
    leaves them untouched.
    """
    params: Dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        if name == "handler":
            params["Handler"] = value
        elif name == "runtime":
            params["Runtime"] = value
        elif name == "memory_size":
            params["MemorySize"] = value
        elif name == "timeout":
            params["Timeout"] = value
        elif name == "role":
            params["Role"] = value
        elif name == "description":
            params["Description"] = value
        elif name == "environment":
            params["Environment"] = {"Variables": dict(value)}
        elif name == "vpc_config":
            params["VpcConfig"] = {
                "SubnetIds": list(value.subnet_ids),
                "SecurityGroupIds": list(value.security_group_ids),
                "Ipv6AllowedForDualStack": value.ipv6_allowed_for_dual_stack,
            }
        elif name == "dead_letter_target_arn":
            params["DeadLetterConfig"] = {"TargetArn": value}
        elif name == "kms_key_arn":
            params["KMSKeyArn"] = value
        elif name == "tracing_mode":
            params["TracingConfig"] = {"Mode": value}
        elif name == "layers":
            params["Layers"] = list(value)
        elif name == "file_system_configs":
            params["FileSystemConfigs"] = [
                {"Arn": fs.arn, "LocalMountPath": fs.local_mount_path} for fs in value
            ]
        elif name == "image_config":
            image: Dict[str, Any] = {}
            if value.entry_point:
                image["EntryPoint"] = list(value.entry_point)
            if value.command:
                image["Command"] = list(value.command)
            if value.working_directory:
                image["WorkingDirectory"] = value.working_directory
            params["ImageConfig"] = image
        elif name == "ephemeral_storage":
            params["EphemeralStorage"] = {"Size": value}
        elif name == "snap_start":
            params["SnapStart"] = {"ApplyOn": value}
        elif name == "logging_config":
            logging_params = {
                "LogFormat": value.log_format,
                "ApplicationLogLevel": value.application_log_level,
                "SystemLogLevel": value.system_log_level,
                "LogGroup": value.log_group,
            }
            params["LoggingConfig"] = {k: v for k, v in logging_params.items() if v is not None}
        # tags, code signing and architecture go through dedicated calls
    return params


def code_params(code: CodeSource) -> Dict[str, Any]:
    if isinstance(code, InlineCode):
        return {"ZipFile": code.zip_bytes}
    if isinstance(code, ObjectStoreRef):
        return {"S3Bucket": code.bucket, "S3Key": code.key}
    if isinstance(code, ImageRef):
        return {"ImageUri": code.image_uri}
    raise TypeError(f"Unsupported code source: {code!r}")


class BotoFunctionService:
    """
    FunctionService over the AWS Lambda API.
    """

    def __init__(self, client, wait_delay: int = 2, wait_max_attempts: int = 150):
        self.client = client
        self.wait_delay = wait_delay
        self.wait_max_attempts = wait_max_attempts

    def get_function(self, identity: FunctionIdentity) -> RemoteFunctionState:
        with translating("GetFunction", identity.name):
            response = self.client.get_function(FunctionName=identity.name)
        with translating("GetFunctionCodeSigningConfig", identity.name):
            signing = self.client.get_function_code_signing_config(FunctionName=identity.name)

        configuration = response["Configuration"]
        code = response.get("Code") or {}
        image_uri = code.get("ImageUri") if configuration.get("PackageType") == "Image" else None
        return RemoteFunctionState(
            config=config_from_response(
                configuration,
                response.get("Tags") or {},
                signing.get("CodeSigningConfigArn") or None,
            ),
            revision_id=configuration["RevisionId"],
            arn=configuration["FunctionArn"],
            last_update_status=_last_update_status(configuration),
            code_sha256=configuration.get("CodeSha256"),
            image_uri=image_uri,
            status_reason=configuration.get("LastUpdateStatusReason") or configuration.get("StateReason"),
        )

    def create_function(self, identity: FunctionIdentity, config: DesiredConfig, code: CodeSource) -> MutationReceipt:
        values = {
            name: getattr(config, name)
            for name in DesiredConfig.__dataclass_fields__
        }
        params = config_params(values)
        params["FunctionName"] = identity.name
        params["Code"] = code_params(code)
        params["PackageType"] = "Image" if isinstance(code, ImageRef) else "Zip"
        params["Publish"] = False
        if config.architecture:
            params["Architectures"] = [config.architecture]
        if config.tags:
            params["Tags"] = dict(config.tags)
        if config.code_signing_config_arn:
            params["CodeSigningConfigArn"] = config.code_signing_config_arn

        logger.info("Creating function", function_name=identity.name, package_type=params["PackageType"])
        with translating("CreateFunction", identity.name):
            response = self.client.create_function(**params)
        return MutationReceipt(arn=response.get("FunctionArn"), revision_id=response.get("RevisionId"))

    def update_function_code(
        self,
        identity: FunctionIdentity,
        code: CodeSource,
        architecture: Optional[str] = None,
        revision_id: Optional[str] = None,
    ) -> MutationReceipt:
        params = code_params(code)
        params["FunctionName"] = identity.name
        params["Publish"] = False
        if architecture:
            params["Architectures"] = [architecture]
        if revision_id:
            params["RevisionId"] = revision_id

        logger.info("Updating function code", function_name=identity.name)
        with translating("UpdateCode", identity.name):
            response = self.client.update_function_code(**params)
        return MutationReceipt(arn=response.get("FunctionArn"), revision_id=response.get("RevisionId"))

    def update_function_configuration(
        self,
        identity: FunctionIdentity,
        changes: Mapping[str, Any],
        revision_id: Optional[str] = None,
    ) -> MutationReceipt:
        params = config_params(changes)
        signing_arn = changes.get("code_signing_config_arn")
        tags = changes.get("tags")
        arn = None
        new_revision = None
        applied: List[str] = []

        if params:
            params["FunctionName"] = identity.name
            if revision_id:
                params["RevisionId"] = revision_id
            logger.info("Updating function configuration", function_name=identity.name, fields=sorted(params))
            with translating("UpdateConfiguration", identity.name):
                response = self.client.update_function_configuration(**params)
            applied.append("UpdateFunctionConfiguration")
            arn = response.get("FunctionArn")
            new_revision = response.get("RevisionId")
        elif revision_id:
            # Tag and code signing calls take no revision token.
            arn = self._check_revision(identity, revision_id)

        with _marking_applied(applied):
            if signing_arn is not None:
                if applied:
                    self._wait_until_updated(identity)
                with translating("UpdateConfiguration", identity.name):
                    self.client.put_function_code_signing_config(
                        CodeSigningConfigArn=signing_arn,
                        FunctionName=identity.name,
                    )
                applied.append("PutFunctionCodeSigningConfig")

            if tags is not None:
                arn = arn or self._function_arn(identity)
                self._sync_tags(identity, arn, tags, applied)
        return MutationReceipt(arn=arn, revision_id=new_revision)

    def publish_version(self, identity: FunctionIdentity) -> MutationReceipt:
        logger.info("Publishing version", function_name=identity.name)
        with translating("PublishVersion", identity.name):
            response = self.client.publish_version(FunctionName=identity.name)
        # The returned ARN is version-qualified; the unqualified one stays authoritative.
        return MutationReceipt(revision_id=response.get("RevisionId"), version=response.get("Version"))

    def _function_arn(self, identity: FunctionIdentity) -> str:
        with translating("UpdateConfiguration", identity.name):
            configuration = self.client.get_function_configuration(FunctionName=identity.name)
        return configuration["FunctionArn"]

    def _check_revision(self, identity: FunctionIdentity, expected: str) -> str:
        with translating("UpdateConfiguration", identity.name):
            configuration = self.client.get_function_configuration(FunctionName=identity.name)
        actual = configuration.get("RevisionId")
        if actual != expected:
            raise ConcurrencyConflict(
                f"Function {identity.name} is at revision {actual}, expected {expected}",
                expected=expected,
                actual=actual,
                operation="UpdateConfiguration",
                function_name=identity.name,
            )
        return configuration["FunctionArn"]

    def _wait_until_updated(self, identity: FunctionIdentity) -> None:
        logger.debug("Waiting for configuration update to settle", function_name=identity.name)
        with translating("UpdateConfiguration", identity.name):
            self.client.get_waiter("function_updated").wait(
                FunctionName=identity.name,
                WaiterConfig={"Delay": self.wait_delay, "MaxAttempts": self.wait_max_attempts},
            )

    def _sync_tags(self, identity: FunctionIdentity, arn: str, desired: Mapping[str, str], applied: List[str]) -> None:
        with translating("UpdateConfiguration", identity.name):
            current = _user_tags(self.client.list_tags(Resource=arn).get("Tags") or {})
        stale = sorted(key for key in current if key not in desired)
        if stale:
            with translating("UpdateConfiguration", identity.name):
                self.client.untag_resource(Resource=arn, TagKeys=stale)
            applied.append("UntagResource")
        changed = {k: v for k, v in desired.items() if current.get(k) != v}
        if changed:
            with translating("UpdateConfiguration", identity.name):
                self.client.tag_resource(Resource=arn, Tags=changed)
            applied.append("TagResource")
        logger.info("Tags synchronized", function_name=identity.name, removed=stale, set=sorted(changed))
