"""
Translation of botocore failures into the kernel's fault taxonomy.
"""
from contextlib import contextmanager
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from fndeploy.kernel.errors import (
    ConcurrencyConflict,
    DeployError,
    InvalidInput,
    ResourceNotFound,
    ServiceFault,
    Throttled,
    UpdateInProgress,
)

NOT_FOUND_CODES = {"ResourceNotFoundException", "NoSuchBucket", "NotFound", "404"}
STALE_REVISION_CODES = {"PreconditionFailedException"}
IN_PROGRESS_CODES = {"ResourceConflictException"}
THROTTLING_CODES = {
    "TooManyRequestsException",
    "ThrottlingException",
    "Throttling",
    "RequestLimitExceeded",
    "SlowDown",
}
INVALID_INPUT_CODES = {
    "InvalidParameterValueException",
    "ValidationException",
    "RequestTooLargeException",
    "InvalidRequestContentException",
    "CodeStorageExceededException",
    "CodeVerificationFailedException",
    "InvalidCodeSignatureException",
}


def translate_client_error(
    exc: Exception,
    operation: Optional[str] = None,
    function_name: Optional[str] = None,
) -> DeployError:
    context = {"operation": operation, "function_name": function_name}

    if isinstance(exc, WaiterError):
        return ServiceFault(str(exc), code="WaiterError", retryable=False, **context)

    if isinstance(exc, BotoCoreError):
        # Transport-level failure (connection reset, endpoint unreachable, ...)
        return ServiceFault(str(exc), code=type(exc).__name__, retryable=True, **context)

    if not isinstance(exc, ClientError):
        return ServiceFault(str(exc), **context)

    error = exc.response.get("Error", {})
    code = str(error.get("Code", "Unknown"))
    message = error.get("Message") or str(exc)
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)

    if code in NOT_FOUND_CODES:
        return ResourceNotFound(message, **context)
    if code in STALE_REVISION_CODES:
        return ConcurrencyConflict(message, **context)
    if code in IN_PROGRESS_CODES:
        return UpdateInProgress(message, code=code, **context)
    if code in THROTTLING_CODES:
        return Throttled(message, code=code, **context)
    if code in INVALID_INPUT_CODES:
        return InvalidInput(message, code=code, **context)
    return ServiceFault(message, code=code, retryable=status >= 500, **context)


@contextmanager
def translating(operation: str, function_name: Optional[str] = None):
    try:
        yield
    except (ClientError, BotoCoreError) as exc:
        raise translate_client_error(exc, operation, function_name) from exc
