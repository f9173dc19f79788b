"""
This module defines the deployment service of the fndeploy kernel.
It runs one reconciliation for one function, delegating to the locator,
state reader, builder, reconciler and executor.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from fndeploy.internal.config import Settings
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.artifacts import ArtifactLocator, ArtifactRequest, DeploymentPackage
from fndeploy.kernel.contracts import (
    CodeSource,
    DeploymentPlan,
    DeploymentResult,
    FunctionIdentity,
    FunctionService,
    ObjectStore,
)
from fndeploy.kernel.desired import DesiredStateBuilder, resolve_packaging_mode, validate_inputs
from fndeploy.kernel.errors import BucketProvisioningRequired, ValidationError
from fndeploy.kernel.execution import Executor, StepCallback
from fndeploy.kernel.inputs import DeployInputs
from fndeploy.kernel.planner import Reconciler, ReconcileState, log_transition
from fndeploy.kernel.state import StateReader

logger = get_logger(__name__)


class DeploymentService:
    """
    Orchestrates a run: validate, locate code and read remote state in
    parallel, build the desired state, plan, then execute.
    """

    def __init__(
        self,
        function_service: FunctionService,
        object_store: Optional[ObjectStore] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_step: Optional[StepCallback] = None,
    ):
        settings = settings or Settings()
        self.object_store = object_store
        self.reader = StateReader(
            function_service,
            retries=settings.read_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            sleep=sleep,
            clock=clock,
        )
        self.locator = ArtifactLocator(object_store)
        self.builder = DesiredStateBuilder()
        self.reconciler = Reconciler()
        self.executor = Executor(
            function_service,
            self.reader,
            max_wait_seconds=settings.max_wait_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
            on_step=on_step,
        )

    def prepare(self, inputs: DeployInputs, package: Optional[DeploymentPackage] = None) -> DeploymentPlan:
        """
        Everything up to and including the plan. Validation and read faults
        surface here, before any function mutation.
        """
        violations = validate_inputs(inputs, has_package=package is not None)
        if violations:
            raise ValidationError(violations, function_name=inputs.function_name)

        identity = FunctionIdentity(inputs.function_name)
        request = ArtifactRequest(
            function_name=inputs.function_name,
            mode=resolve_packaging_mode(inputs),
            package=package,
            bucket=inputs.s3_bucket,
            key=inputs.s3_key,
            image_uri=inputs.image_uri,
            dry_run=inputs.dry_run,
        )

        # Locating (and possibly uploading) the code is independent of the read.
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fndeploy") as pool:
            state_future = pool.submit(self.reader.read, identity)
            code_future = pool.submit(self._locate, request)
            remote = state_future.result()
            code = code_future.result()

        desired = self.builder.build(inputs, remote, has_package=package is not None)
        return self.reconciler.plan(
            identity,
            desired,
            code,
            remote,
            publish=inputs.publish,
            dry_run=inputs.dry_run,
            revision_id=inputs.revision_id,
        )

    def deploy(self, inputs: DeployInputs, package: Optional[DeploymentPackage] = None) -> DeploymentResult:
        plan = self.prepare(inputs, package)
        result = self.executor.apply(plan)
        log_transition(plan.identity, ReconcileState.DRY if plan.dry_run else ReconcileState.EXECUTED)
        log_transition(plan.identity, ReconcileState.DONE)
        return result

    def _locate(self, request: ArtifactRequest) -> CodeSource:
        try:
            return self.locator.locate(request)
        except BucketProvisioningRequired as exc:
            logger.warning("Target bucket missing, creating it", bucket=exc.bucket)
            self.object_store.create_bucket(exc.bucket)
            return self.locator.locate(request)
