"""
Desired-State Builder.

Turns parsed DeployInputs into a canonical DesiredConfig. Defaults depend only
on the caller's input and on whether the function already exists, and every
violated constraint is reported together.
"""
import re
from dataclasses import fields
from typing import Any, Dict, List, Optional, Tuple

from fndeploy.internal import constants
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import (
    CODE_FIELDS,
    DesiredConfig,
    FileSystemConfig,
    ImageConfig,
    LoggingConfig,
    RemoteFunctionState,
    VpcConfig,
)
from fndeploy.kernel.errors import ValidationError
from fndeploy.kernel.inputs import DeployInputs

logger = get_logger(__name__)

_FUNCTION_NAME_RE = re.compile(r"^(arn:aws[a-zA-Z-]*:lambda:[a-z0-9-]+:\d{12}:function:)?[a-zA-Z0-9_-]{1,64}$")
_ROLE_ARN_RE = re.compile(r"^arn:aws[a-zA-Z-]*:iam::\d{12}:role/.+$")
_LAYER_ARN_RE = re.compile(r"^arn:aws[a-zA-Z-]*:lambda:[a-z0-9-]+:\d{12}:layer:[a-zA-Z0-9_-]+:\d+$")
_DLQ_ARN_RE = re.compile(r"^arn:aws[a-zA-Z-]*:(sqs|sns):[a-z0-9-]+:\d{12}:.+$")
_ENV_KEY_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


# ---------------------------------------------------------------------
# Packaging mode
# ---------------------------------------------------------------------

def resolve_packaging_mode(inputs: DeployInputs) -> str:
    """Explicit mode wins; otherwise inferred from which code inputs were given."""
    if inputs.packaging_mode:
        return inputs.packaging_mode
    if inputs.image_uri:
        return "image"
    if inputs.s3_bucket or inputs.s3_key:
        return "object-store"
    return "direct"


def _code_source_violations(inputs: DeployInputs, has_package: bool) -> List[str]:
    mode = resolve_packaging_mode(inputs)
    violations = []
    if mode == "image":
        if not inputs.image_uri:
            violations.append("image_uri is required for image packaging")
        if inputs.s3_bucket or inputs.s3_key:
            violations.append("s3_bucket/s3_key cannot be combined with image packaging")
        if has_package:
            violations.append("a code package cannot be combined with image packaging")
    elif mode == "object-store":
        if not inputs.s3_bucket:
            violations.append("s3_bucket is required for object-store packaging")
        if not has_package and not inputs.s3_key:
            violations.append("s3_key is required when no code package is supplied")
        if inputs.image_uri:
            violations.append("image_uri cannot be combined with object-store packaging")
    else:
        if not has_package:
            violations.append("a code package is required for direct packaging")
        if inputs.s3_bucket or inputs.s3_key:
            violations.append("s3_bucket/s3_key cannot be combined with direct packaging")
        if inputs.image_uri:
            violations.append("image_uri cannot be combined with direct packaging")

    if inputs.image_config is not None and mode != "image":
        violations.append("image_config requires image packaging")
    if mode == "image":
        for name in ("handler", "runtime", "layers"):
            if getattr(inputs, name) is not None:
                violations.append(f"{name} cannot be set for image packaging")
    return violations


# ---------------------------------------------------------------------
# Nested structure normalization
# ---------------------------------------------------------------------

def _pick(data: Dict[str, Any], *names: str, default=None):
    for name in names:
        if name in data:
            return data[name]
    return default


def _str_tuple(value, label: str, errors: List[str], sort: bool = False) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        errors.append(f"{label} must be a list of strings")
        return ()
    return tuple(sorted(value)) if sort else tuple(value)


def normalize_vpc_config(raw: Dict[str, Any], errors: List[str]) -> VpcConfig:
    subnets = _str_tuple(_pick(raw, "SubnetIds", "subnet_ids"), "vpc_config.SubnetIds", errors, sort=True)
    groups = _str_tuple(
        _pick(raw, "SecurityGroupIds", "security_group_ids"), "vpc_config.SecurityGroupIds", errors, sort=True
    )
    if bool(subnets) != bool(groups):
        errors.append("vpc_config needs both SubnetIds and SecurityGroupIds, or neither to detach")
    ipv6 = _pick(raw, "Ipv6AllowedForDualStack", "ipv6_allowed_for_dual_stack", default=False)
    if not isinstance(ipv6, bool):
        errors.append("vpc_config.Ipv6AllowedForDualStack must be a boolean")
        ipv6 = False
    return VpcConfig(subnet_ids=subnets, security_group_ids=groups, ipv6_allowed_for_dual_stack=ipv6)


def normalize_file_system_configs(raw: List[Dict[str, Any]], errors: List[str]) -> Tuple[FileSystemConfig, ...]:
    configs = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(f"file_system_configs[{index}] must be an object")
            continue
        arn = _pick(item, "Arn", "arn")
        mount = _pick(item, "LocalMountPath", "local_mount_path")
        if not arn:
            errors.append(f"file_system_configs[{index}].Arn is required")
        if not mount or not str(mount).startswith("/mnt/"):
            errors.append(f"file_system_configs[{index}].LocalMountPath must start with /mnt/")
        if arn and mount:
            configs.append(FileSystemConfig(arn=arn, local_mount_path=mount))
    return tuple(configs)


def normalize_image_config(raw: Dict[str, Any], errors: List[str]) -> ImageConfig:
    return ImageConfig(
        entry_point=_str_tuple(_pick(raw, "EntryPoint", "entry_point"), "image_config.EntryPoint", errors),
        command=_str_tuple(_pick(raw, "Command", "command"), "image_config.Command", errors),
        working_directory=_pick(raw, "WorkingDirectory", "working_directory"),
    )


def normalize_logging_config(raw: Dict[str, Any], errors: List[str]) -> LoggingConfig:
    config = LoggingConfig(
        log_format=_pick(raw, "LogFormat", "log_format"),
        application_log_level=_pick(raw, "ApplicationLogLevel", "application_log_level"),
        system_log_level=_pick(raw, "SystemLogLevel", "system_log_level"),
        log_group=_pick(raw, "LogGroup", "log_group"),
    )
    if config.log_format is not None and config.log_format not in constants.LOG_FORMATS:
        errors.append(f"logging_config.LogFormat must be one of {', '.join(constants.LOG_FORMATS)}")
    return config


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------

def _check_range(name: str, value: Optional[int], bounds: Tuple[int, int], errors: List[str]) -> None:
    low, high = bounds
    if value is not None and not low <= value <= high:
        errors.append(f"{name} must be between {low} and {high}, got {value}")


def _check_choice(name: str, value: Optional[str], choices: Tuple[str, ...], errors: List[str]) -> None:
    if value is not None and value not in choices:
        errors.append(f"{name} must be one of {', '.join(choices)}, got {value!r}")


def validate_inputs(inputs: DeployInputs, has_package: bool) -> List[str]:
    """
    Checks that do not depend on remote state. Returns every violation found.
    """
    errors: List[str] = []

    if not _FUNCTION_NAME_RE.match(inputs.function_name):
        errors.append(f"function_name {inputs.function_name!r} is not a valid function name or ARN")

    errors.extend(_code_source_violations(inputs, has_package))

    _check_range("memory_size", inputs.memory_size, constants.MEMORY_SIZE_RANGE, errors)
    _check_range("timeout", inputs.timeout, constants.TIMEOUT_RANGE, errors)
    _check_range("ephemeral_storage", inputs.ephemeral_storage, constants.EPHEMERAL_STORAGE_RANGE, errors)
    _check_choice("architecture", inputs.architecture, constants.ARCHITECTURES, errors)
    _check_choice("tracing_mode", inputs.tracing_mode, constants.TRACING_MODES, errors)
    _check_choice("snap_start", inputs.snap_start, constants.SNAP_START_MODES, errors)

    if inputs.role is not None and not _ROLE_ARN_RE.match(inputs.role):
        errors.append(f"role {inputs.role!r} is not an IAM role ARN")

    if inputs.layers is not None:
        if len(inputs.layers) > constants.MAX_LAYERS:
            errors.append(f"at most {constants.MAX_LAYERS} layers are allowed, got {len(inputs.layers)}")
        for layer in inputs.layers:
            if not _LAYER_ARN_RE.match(layer):
                errors.append(f"layer {layer!r} is not a versioned layer ARN")

    if inputs.environment is not None:
        for key in inputs.environment:
            if not _ENV_KEY_RE.match(key):
                errors.append(f"environment variable name {key!r} is invalid")

    if inputs.dead_letter_config is not None and not _DLQ_ARN_RE.match(inputs.dead_letter_config):
        errors.append("dead_letter_config must be an SQS queue or SNS topic ARN")

    return errors


# ---------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------

def apply_defaults(inputs: DeployInputs, function_exists: bool) -> Dict[str, Any]:
    """
    Create-time defaults for fields the caller omitted.

    Defaults never apply to an existing function: only explicit input changes
    its remote values.
    """
    if function_exists:
        return {}

    defaults: Dict[str, Any] = {}
    if resolve_packaging_mode(inputs) != "image":
        if inputs.handler is None:
            defaults["handler"] = constants.DEFAULT_HANDLER
        if inputs.runtime is None:
            defaults["runtime"] = constants.DEFAULT_RUNTIME
    if inputs.timeout is None:
        defaults["timeout"] = constants.DEFAULT_TIMEOUT_SECONDS
    if inputs.ephemeral_storage is None:
        defaults["ephemeral_storage"] = constants.DEFAULT_EPHEMERAL_STORAGE_MB
    return defaults


# ---------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------

class DesiredStateBuilder:
    """
    Validates inputs per create/update branch and produces a DesiredConfig.
    """

    def build(
        self,
        inputs: DeployInputs,
        remote: Optional[RemoteFunctionState],
        has_package: bool,
    ) -> DesiredConfig:
        exists = remote is not None
        errors = validate_inputs(inputs, has_package)

        if not exists and not inputs.role:
            errors.append("role is required to create a new function")

        vpc_config = None
        if inputs.vpc_config is not None:
            vpc_config = normalize_vpc_config(inputs.vpc_config, errors)
        file_system_configs = None
        if inputs.file_system_configs is not None:
            file_system_configs = normalize_file_system_configs(inputs.file_system_configs, errors)
        image_config = None
        if inputs.image_config is not None:
            image_config = normalize_image_config(inputs.image_config, errors)
        logging_config = None
        if inputs.logging_config is not None:
            logging_config = normalize_logging_config(inputs.logging_config, errors)

        if errors:
            raise ValidationError(errors, function_name=inputs.function_name)

        values: Dict[str, Any] = dict(
            handler=inputs.handler,
            runtime=inputs.runtime,
            memory_size=inputs.memory_size,
            timeout=inputs.timeout,
            architecture=inputs.architecture,
            environment=dict(inputs.environment) if inputs.environment is not None else None,
            role=inputs.role,
            description=inputs.description,
            vpc_config=vpc_config,
            dead_letter_target_arn=inputs.dead_letter_config,
            kms_key_arn=inputs.kms_key_arn,
            tracing_mode=inputs.tracing_mode,
            layers=tuple(inputs.layers) if inputs.layers is not None else None,
            file_system_configs=file_system_configs,
            image_config=image_config,
            ephemeral_storage=inputs.ephemeral_storage,
            snap_start=inputs.snap_start,
            logging_config=logging_config,
            code_signing_config_arn=inputs.code_signing_config_arn,
            tags=dict(inputs.tags) if inputs.tags is not None else None,
        )
        defaults = apply_defaults(inputs, exists)
        if defaults:
            logger.debug("Applying create-time defaults", function_name=inputs.function_name, **defaults)
        values.update(defaults)
        return DesiredConfig(**values)


# ---------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------

def _matches(wanted: Any, current: Any) -> bool:
    # Unset sub-fields of a logging or image config are not compared.
    if isinstance(wanted, (LoggingConfig, ImageConfig)) and type(wanted) is type(current):
        return all(
            getattr(wanted, f.name) is None or getattr(wanted, f.name) == getattr(current, f.name)
            for f in fields(wanted)
        )
    return wanted == current


def diff_config(desired: DesiredConfig, current: DesiredConfig) -> Dict[str, Any]:
    """
    Configuration fields whose desired value differs from the current one.

    Unset desired fields are never reported; code-level fields are left to
    the code diff.
    """
    changes: Dict[str, Any] = {}
    for f in fields(DesiredConfig):
        if f.name in CODE_FIELDS:
            continue
        wanted = getattr(desired, f.name)
        if wanted is None:
            continue
        if not _matches(wanted, getattr(current, f.name)):
            changes[f.name] = wanted
    return changes
