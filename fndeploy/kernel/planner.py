"""
Reconciler: decides which remote operations a run issues and in which order.

Pure logic: input = desired config, located code, remote state (or None);
output = an immutable DeploymentPlan. Execution is the Executor's job.
"""
import dataclasses
from enum import Enum
from typing import List, Optional

from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import (
    Branch,
    CodeSource,
    CreateFunction,
    DeploymentPlan,
    DesiredConfig,
    FunctionIdentity,
    ImageRef,
    InlineCode,
    NoOp,
    ObjectStoreRef,
    Operation,
    PublishVersion,
    RemoteFunctionState,
    UpdateCode,
    UpdateConfiguration,
)
from fndeploy.kernel.desired import diff_config
from fndeploy.kernel.errors import ConcurrencyConflict, ValidationError

logger = get_logger(__name__)


class ReconcileState(str, Enum):
    START = "start"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    PLAN_BUILT = "plan_built"
    DRY = "dry"
    EXECUTED = "executed"
    DONE = "done"


def log_transition(identity: FunctionIdentity, state: ReconcileState) -> None:
    logger.info("Reconciler state", function_name=identity.name, state=state.value)


def code_changed(code: CodeSource, remote: RemoteFunctionState) -> bool:
    """
    Whether the located code differs from the deployed code. When the two
    cannot be compared the code is treated as changed.
    """
    if isinstance(code, InlineCode):
        return remote.code_sha256 is None or code.sha256 != remote.code_sha256
    if isinstance(code, ObjectStoreRef):
        return code.sha256 is None or remote.code_sha256 is None or code.sha256 != remote.code_sha256
    if isinstance(code, ImageRef):
        # A tag can move without the URI changing; only a digest pins the image.
        return not (code.is_digest_pinned and code.image_uri == remote.image_uri)
    raise TypeError(f"Unsupported code source: {code!r}")


def _package_type_violation(code: CodeSource, remote: RemoteFunctionState) -> Optional[str]:
    is_image = isinstance(code, ImageRef)
    remote_is_image = remote.image_uri is not None
    if is_image and not remote_is_image:
        return "cannot switch an existing zip-packaged function to image packaging"
    if not is_image and remote_is_image:
        return "cannot switch an existing image-packaged function to zip packaging"
    return None


class Reconciler:
    def plan(
        self,
        identity: FunctionIdentity,
        desired: DesiredConfig,
        code: CodeSource,
        remote: Optional[RemoteFunctionState],
        *,
        publish: bool = True,
        dry_run: bool = False,
        revision_id: Optional[str] = None,
    ) -> DeploymentPlan:
        log_transition(identity, ReconcileState.START)
        self._check_revision(identity, remote, revision_id)

        if remote is None:
            log_transition(identity, ReconcileState.NOT_EXISTS)
            branch = Branch.CREATE
            operations: List[Operation] = [CreateFunction(identity=identity, config=desired, code=code)]
            if publish:
                operations.append(PublishVersion(identity=identity))
        else:
            log_transition(identity, ReconcileState.EXISTS)
            branch = Branch.UPDATE
            operations = self._plan_update(identity, desired, code, remote, publish)

        operations = self._attach_revision(operations, revision_id)
        if dry_run:
            operations = [dataclasses.replace(op, simulated=True) for op in operations]

        plan = DeploymentPlan(
            identity=identity,
            branch=branch,
            operations=tuple(operations),
            dry_run=dry_run,
            function_arn=remote.arn if remote is not None else None,
            wait_before_first_mutation=remote is not None and not remote.is_ready,
        )
        log_transition(identity, ReconcileState.PLAN_BUILT)
        logger.info(
            "Plan built",
            function_name=identity.name,
            branch=branch.value,
            operations=[op.name for op in plan.operations],
            dry_run=dry_run,
        )
        return plan

    def _check_revision(
        self,
        identity: FunctionIdentity,
        remote: Optional[RemoteFunctionState],
        revision_id: Optional[str],
    ) -> None:
        if revision_id is None:
            return
        if remote is None:
            raise ConcurrencyConflict(
                f"revision {revision_id} was given but the function does not exist",
                expected=revision_id,
                actual=None,
                function_name=identity.name,
            )
        if remote.revision_id != revision_id:
            raise ConcurrencyConflict(
                f"revision {revision_id} is stale; the function is at revision {remote.revision_id}",
                expected=revision_id,
                actual=remote.revision_id,
                function_name=identity.name,
            )

    def _plan_update(
        self,
        identity: FunctionIdentity,
        desired: DesiredConfig,
        code: CodeSource,
        remote: RemoteFunctionState,
        publish: bool,
    ) -> List[Operation]:
        violation = _package_type_violation(code, remote)
        if violation:
            raise ValidationError([violation], function_name=identity.name)

        operations: List[Operation] = []

        architecture_changed = (
            desired.architecture is not None and desired.architecture != remote.config.architecture
        )
        if code_changed(code, remote) or architecture_changed:
            operations.append(UpdateCode(identity=identity, code=code, architecture=desired.architecture))

        changes = diff_config(desired, remote.config)
        if changes:
            operations.append(UpdateConfiguration(identity=identity, changes=changes))

        if not operations:
            return [NoOp(identity=identity)]

        if publish:
            operations.append(PublishVersion(identity=identity))
        return operations

    def _attach_revision(self, operations: List[Operation], revision_id: Optional[str]) -> List[Operation]:
        """The revision token guards the first mutating operation only."""
        if revision_id is None:
            return operations
        attached = list(operations)
        for index, op in enumerate(attached):
            if not op.mutating:
                continue
            if isinstance(op, (UpdateCode, UpdateConfiguration)):
                attached[index] = dataclasses.replace(op, revision_id=revision_id)
            break
        return attached
