import dataclasses
from dataclasses import is_dataclass

import pytest

from fndeploy.kernel.contracts import (
    Branch,
    CreateFunction,
    DeploymentPlan,
    DesiredConfig,
    FunctionIdentity,
    ImageRef,
    InlineCode,
    NoOp,
    PublishVersion,
    UpdateConfiguration,
)


@pytest.fixture
def identity():
    return FunctionIdentity("f1")


def test_function_identity_rejects_empty_name():
    with pytest.raises(ValueError, match="function name cannot be empty"):
        FunctionIdentity("")


def test_contracts_are_frozen_dataclasses(identity):
    assert is_dataclass(DesiredConfig)
    with pytest.raises(dataclasses.FrozenInstanceError):
        identity.name = "other"


def test_inline_code_repr_hides_payload():
    code = InlineCode(zip_bytes=b"secret-bytes", sha256="abc")
    assert "secret-bytes" not in repr(code)
    assert code.size == len(b"secret-bytes")


@pytest.mark.parametrize("uri, pinned", [
    ("123456789012.dkr.ecr.us-east-1.amazonaws.com/app:latest", False),
    ("123456789012.dkr.ecr.us-east-1.amazonaws.com/app@sha256:" + "a" * 64, True),
])
def test_image_ref_digest_pinning(uri, pinned):
    assert ImageRef(uri).is_digest_pinned is pinned


def test_noop_is_the_only_non_mutating_operation(identity):
    assert NoOp(identity=identity).mutating is False
    assert PublishVersion(identity=identity).mutating is True
    assert UpdateConfiguration(identity=identity, changes={"timeout": 5}).mutating is True


def test_plan_reports_noop_when_nothing_mutates(identity):
    plan = DeploymentPlan(identity=identity, branch=Branch.UPDATE, operations=(NoOp(identity=identity),))
    assert plan.is_noop
    assert plan.mutating_operations == ()


def test_plan_lists_mutating_operations_in_order(identity):
    create = CreateFunction(identity=identity, config=DesiredConfig(), code=InlineCode(zip_bytes=b"", sha256="x"))
    publish = PublishVersion(identity=identity)
    plan = DeploymentPlan(identity=identity, branch=Branch.CREATE, operations=(create, publish))
    assert [op.name for op in plan.mutating_operations] == ["CreateFunction", "PublishVersion"]
