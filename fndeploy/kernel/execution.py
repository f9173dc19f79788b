"""
This module applies a DeploymentPlan against the function service.

Operations run strictly in order. The function must be out of its pending
state before each mutation, a failure aborts the rest of the plan, and
nothing is ever rolled back: when a step fails after earlier steps, or some
of its own remote calls, took effect, the caller gets a PartialSuccess naming
what completed.
"""
from typing import Callable, List, Optional

from fndeploy.internal import constants
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import (
    CreateFunction,
    DeploymentPlan,
    DeploymentResult,
    FunctionService,
    MutationReceipt,
    NoOp,
    Operation,
    PublishVersion,
    UpdateCode,
    UpdateConfiguration,
)
from fndeploy.kernel.errors import DeployError, PartialSuccess
from fndeploy.kernel.state import StateReader

logger = get_logger(__name__)

StepCallback = Callable[[Operation, str], None]


class Executor:
    """
    Consumes a plan read-only and issues one remote call per mutating step.
    """

    def __init__(
        self,
        service: FunctionService,
        reader: StateReader,
        max_wait_seconds: float = constants.DEFAULT_MAX_WAIT_SECONDS,
        poll_interval_seconds: float = constants.DEFAULT_POLL_INTERVAL_SECONDS,
        on_step: Optional[StepCallback] = None,
    ):
        self.service = service
        self.reader = reader
        self.max_wait_seconds = max_wait_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.on_step = on_step

    def apply(self, plan: DeploymentPlan) -> DeploymentResult:
        if plan.dry_run:
            return self._simulate(plan)

        function_arn = plan.function_arn
        published_version = None
        applied: List[Operation] = []
        # Set when the function may still be pending: before the first
        # mutation of a not-ready function, and after every mutation.
        must_wait = plan.wait_before_first_mutation
        pre_existing = True

        for op in plan.operations:
            if isinstance(op, NoOp):
                logger.info("Nothing to do", function_name=plan.identity.name, reason=op.reason)
                applied.append(op)
                self._notify(op, "skipped")
                continue

            try:
                if must_wait:
                    self.reader.wait_until_ready(
                        plan.identity,
                        max_wait_seconds=self.max_wait_seconds,
                        poll_interval_seconds=self.poll_interval_seconds,
                        tolerate_failed=pre_existing,
                    )
                self._notify(op, "started")
                receipt = self._dispatch(op)
            except DeployError as exc:
                exc.attach(operation=op.name, function_name=plan.identity.name)
                self._notify(op, "failed")
                completed = [done for done in applied if done.mutating]
                if completed or exc.applied:
                    logger.error(
                        "Step failed after remote changes were applied",
                        function_name=plan.identity.name,
                        operation=op.name,
                        completed=[done.name for done in completed],
                        applied_in_step=list(exc.applied),
                        error=exc.describe(),
                    )
                    raise PartialSuccess(completed, op.name, exc, function_name=plan.identity.name) from exc
                logger.error("Step failed", function_name=plan.identity.name, operation=op.name, error=exc.describe())
                raise

            applied.append(op)
            self._notify(op, "completed")
            must_wait = True
            pre_existing = False

            if receipt.arn:
                function_arn = receipt.arn
            if isinstance(op, PublishVersion):
                published_version = receipt.version
            logger.info(
                "Step completed",
                function_name=plan.identity.name,
                operation=op.name,
                revision_id=receipt.revision_id,
                version=receipt.version,
            )

        return DeploymentResult(
            function_arn=function_arn,
            published_version=published_version,
            operations_applied=tuple(applied),
            dry_run=False,
        )

    def _simulate(self, plan: DeploymentPlan) -> DeploymentResult:
        for op in plan.operations:
            logger.info("Dry run: would apply", function_name=plan.identity.name, operation=op.name, detail=op.describe())
            self._notify(op, "simulated")
        return DeploymentResult(
            function_arn=plan.function_arn,
            published_version=None,
            operations_applied=plan.operations,
            dry_run=True,
        )

    def _dispatch(self, op: Operation) -> MutationReceipt:
        if op.simulated:
            raise ValueError(f"Simulated operation {op.name} cannot be executed")
        if isinstance(op, CreateFunction):
            return self.service.create_function(op.identity, op.config, op.code)
        if isinstance(op, UpdateCode):
            return self.service.update_function_code(
                op.identity, op.code, architecture=op.architecture, revision_id=op.revision_id
            )
        if isinstance(op, UpdateConfiguration):
            return self.service.update_function_configuration(op.identity, op.changes, revision_id=op.revision_id)
        if isinstance(op, PublishVersion):
            return self.service.publish_version(op.identity)
        raise TypeError(f"Unsupported operation: {op!r}")

    def _notify(self, op: Operation, status: str) -> None:
        if self.on_step is not None:
            self.on_step(op, status)
