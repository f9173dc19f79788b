"""
Fault taxonomy for a deployment run.

The kernel only defines exceptions; the CLI decides how they are rendered.
Every fault can carry the operation and the function it occurred against.
"""
from typing import Optional, Sequence, Tuple


class DeployError(Exception):
    """Base error for a deployment run."""

    kind = "fault"

    def __init__(self, message: str, *, operation: Optional[str] = None, function_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.function_name = function_name
        # Remote calls that took effect within the failing step before it failed.
        self.applied: Tuple[str, ...] = ()

    def attach(self, *, operation: Optional[str] = None, function_name: Optional[str] = None) -> "DeployError":
        """Fill in missing context without overwriting what the raiser already set."""
        if self.operation is None:
            self.operation = operation
        if self.function_name is None:
            self.function_name = function_name
        return self

    def describe(self) -> str:
        where = ""
        if self.operation:
            where += f" during {self.operation}"
        if self.function_name:
            where += f" on {self.function_name}"
        return f"{self.kind}{where}: {self.message}"

    def __str__(self) -> str:
        return self.describe()


class ValidationError(DeployError):
    """Bad or inconsistent input, raised before any remote mutation."""

    kind = "validation"

    def __init__(self, violations: Sequence[str], **context):
        self.violations = list(violations)
        message = "; ".join(self.violations) if self.violations else "invalid input"
        super().__init__(message, **context)


class ResourceNotFound(DeployError):
    kind = "not_found"


class ConcurrencyConflict(DeployError):
    """The supplied revision token does not match the remote revision."""

    kind = "concurrency_conflict"

    def __init__(self, message: str, *, expected: Optional[str] = None, actual: Optional[str] = None, **context):
        super().__init__(message, **context)
        self.expected = expected
        self.actual = actual


class ServiceFault(DeployError):
    """Failure reported by a remote collaborator."""

    kind = "service_fault"
    retryable = False

    def __init__(self, message: str, *, code: Optional[str] = None, retryable: Optional[bool] = None, **context):
        super().__init__(message, **context)
        self.code = code
        if retryable is not None:
            self.retryable = retryable


class Throttled(ServiceFault):
    kind = "throttled"
    retryable = True


class InvalidInput(ServiceFault):
    kind = "invalid_input"


class UpdateInProgress(ServiceFault):
    """The service is still applying an earlier update to the function."""

    kind = "update_in_progress"


class DeployTimeout(DeployError):
    """The function did not leave the pending state within the wait bound."""

    kind = "timeout"


class BucketProvisioningRequired(DeployError):
    """The target bucket does not exist yet; recoverable by creating it."""

    kind = "bucket_provisioning_required"

    def __init__(self, bucket: str, **context):
        super().__init__(f"Bucket '{bucket}' does not exist", **context)
        self.bucket = bucket


class PartialSuccess(DeployError):
    """A mutating step failed after earlier remote changes of the run took effect."""

    kind = "partial_success"

    def __init__(self, completed: Sequence, failed: str, cause: DeployError, **context):
        self.completed = tuple(completed)
        self.failed = failed
        self.cause = cause
        done = [op.name for op in self.completed]
        done += [f"{call} (part of {failed})" for call in cause.applied]
        message = f"{failed} failed after {', '.join(done) or 'nothing'} completed ({cause.describe()})"
        super().__init__(message, operation=failed, **context)
