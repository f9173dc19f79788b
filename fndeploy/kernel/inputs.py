"""
The declared configuration surface of a deployment run.

Pipeline inputs arrive as plain strings; map- and list-valued inputs may be
JSON-encoded. This model decodes them so the Desired-State Builder only ever
sees structured values.
"""
import json
from typing import Any, Dict, List, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fndeploy.kernel.errors import ValidationError

PackagingMode = Literal["direct", "object-store", "image"]


def _decode_json(value: Any, field_name: str) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{field_name} is not valid JSON: {exc.msg}")
    return value


class DeployInputs(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    function_name: str = Field(..., min_length=1)

    # Code delivery
    packaging_mode: Optional[PackagingMode] = None
    s3_bucket: Optional[str] = None
    s3_key: Optional[str] = None
    image_uri: Optional[str] = None

    # Function configuration
    handler: Optional[str] = None
    runtime: Optional[str] = None
    memory_size: Optional[int] = None
    timeout: Optional[int] = None
    architecture: Optional[str] = None
    environment: Optional[Dict[str, str]] = None
    role: Optional[str] = None
    description: Optional[str] = None
    vpc_config: Optional[Dict[str, Any]] = None
    dead_letter_config: Optional[str] = None
    kms_key_arn: Optional[str] = None
    tracing_mode: Optional[str] = None
    layers: Optional[List[str]] = None
    file_system_configs: Optional[List[Dict[str, Any]]] = None
    image_config: Optional[Dict[str, Any]] = None
    ephemeral_storage: Optional[int] = None
    snap_start: Optional[str] = None
    logging_config: Optional[Dict[str, Any]] = None
    code_signing_config_arn: Optional[str] = None
    tags: Optional[Dict[str, str]] = None

    # Run options
    publish: bool = True
    dry_run: bool = True
    revision_id: Optional[str] = None

    @field_validator("environment", "tags", mode="before")
    @classmethod
    def _decode_string_map(cls, value, info):
        value = _decode_json(value, info.field_name)
        if isinstance(value, dict):
            # Scalars are accepted and stored as their string form.
            return {
                str(k): v if isinstance(v, str) else json.dumps(v)
                for k, v in value.items()
            }
        return value

    @field_validator("vpc_config", "image_config", "logging_config", "file_system_configs", mode="before")
    @classmethod
    def _decode_structured(cls, value, info):
        return _decode_json(value, info.field_name)

    @field_validator("layers", mode="before")
    @classmethod
    def _decode_layers(cls, value):
        if isinstance(value, str):
            text = value.strip()
            if text == "":
                return None
            if text.startswith("["):
                return _decode_json(text, "layers")
            return [part.strip() for part in text.split(",") if part.strip()]
        return value

    # An empty description is kept: it clears the remote one.
    @field_validator(
        "handler", "runtime", "architecture", "role", "dead_letter_config",
        "kms_key_arn", "tracing_mode", "snap_start", "code_signing_config_arn",
        "s3_bucket", "s3_key", "image_uri", "revision_id",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("memory_size", "timeout", "ephemeral_storage", mode="before")
    @classmethod
    def _blank_number_is_unset(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value


def parse_inputs(raw: Dict[str, Any]) -> DeployInputs:
    """
    Build DeployInputs from raw values, reporting every malformed field at once.
    """
    try:
        return DeployInputs.model_validate(raw)
    except pydantic.ValidationError as exc:
        violations = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "inputs"
            message = error["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            violations.append(f"{location}: {message}")
        raise ValidationError(violations, function_name=raw.get("function_name")) from exc
