"""
State Reader.

A missing function is a normal outcome that selects the create branch; any
other failure aborts the run before anything is mutated. Reads are idempotent,
so retryable service faults are retried with exponential backoff.
"""
import time
from typing import Callable, Optional

from fndeploy.internal import constants
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import FunctionIdentity, FunctionService, LastUpdateStatus, RemoteFunctionState
from fndeploy.kernel.errors import DeployTimeout, ResourceNotFound, ServiceFault

logger = get_logger(__name__)


class StateReader:
    def __init__(
        self,
        service: FunctionService,
        retries: int = constants.DEFAULT_READ_RETRIES,
        backoff_seconds: float = constants.DEFAULT_RETRY_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._clock = clock

    def read(self, identity: FunctionIdentity) -> Optional[RemoteFunctionState]:
        """
        Returns the remote state, or None when the function does not exist.
        """
        attempt = 0
        while True:
            try:
                state = self.service.get_function(identity)
            except ResourceNotFound:
                logger.info("Function does not exist", function_name=identity.name)
                return None
            except ServiceFault as exc:
                exc.attach(operation="GetFunction", function_name=identity.name)
                if not exc.retryable or attempt >= self.retries:
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "Read failed, retrying",
                    function_name=identity.name,
                    error=exc.message,
                    attempt=attempt,
                    delay=delay,
                )
                self._sleep(delay)
                continue

            logger.info(
                "Function exists",
                function_name=identity.name,
                revision_id=state.revision_id,
                last_update_status=state.last_update_status.value,
            )
            return state

    def wait_until_ready(
        self,
        identity: FunctionIdentity,
        max_wait_seconds: float = constants.DEFAULT_MAX_WAIT_SECONDS,
        poll_interval_seconds: float = constants.DEFAULT_POLL_INTERVAL_SECONDS,
        tolerate_failed: bool = False,
    ) -> RemoteFunctionState:
        """
        Poll until the function leaves the Pending status.

        A Failed status raises unless `tolerate_failed` is set, which is the
        case for a failure that predates this run.
        """
        deadline = self._clock() + max_wait_seconds
        while True:
            state = self.read(identity)
            if state is None:
                raise ServiceFault(
                    "Function disappeared while waiting for it to become ready",
                    operation="WaitForReady",
                    function_name=identity.name,
                )
            if state.last_update_status is LastUpdateStatus.SUCCESSFUL:
                return state
            if state.last_update_status is LastUpdateStatus.FAILED:
                if tolerate_failed:
                    logger.warning(
                        "Function's last update failed, continuing",
                        function_name=identity.name,
                        reason=state.status_reason,
                    )
                    return state
                raise ServiceFault(
                    f"Function update failed: {state.status_reason or 'no reason given'}",
                    operation="WaitForReady",
                    function_name=identity.name,
                )
            if self._clock() >= deadline:
                raise DeployTimeout(
                    f"Function still pending after {max_wait_seconds:g}s",
                    operation="WaitForReady",
                    function_name=identity.name,
                )
            logger.debug("Function pending, waiting", function_name=identity.name, delay=poll_interval_seconds)
            self._sleep(poll_interval_seconds)
