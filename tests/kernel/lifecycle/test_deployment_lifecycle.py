"""
End-to-end runs of the deployment service against in-memory collaborators.
"""
import pytest

from fndeploy.internal import constants
from fndeploy.kernel.artifacts import DeploymentPackage
from fndeploy.kernel.contracts import DesiredConfig, ObjectStoreRef
from fndeploy.kernel.errors import ConcurrencyConflict, ServiceFault, ValidationError
from fndeploy.kernel.report import report
from tests.kernel.mocks import ACCOUNT_ARN_PREFIX


def test_first_deploy_creates_and_publishes(deployment_service, function_service, make_inputs, package, role_arn):
    result = deployment_service.deploy(make_inputs(role=role_arn), package)

    outputs = report(result)
    assert outputs.function_arn == ACCOUNT_ARN_PREFIX + "f1"
    assert outputs.version == "1"
    created = function_service.functions["f1"]["config"]
    assert created.handler == constants.DEFAULT_HANDLER
    assert created.runtime == constants.DEFAULT_RUNTIME
    assert created.role == role_arn


def test_second_identical_deploy_is_a_noop(deployment_service, function_service, make_inputs, package, role_arn):
    deployment_service.deploy(make_inputs(role=role_arn), package)
    function_service.calls.clear()

    result = deployment_service.deploy(make_inputs(role=role_arn), package)

    assert function_service.mutating_calls == []
    assert [op.name for op in result.operations_applied] == ["NoOp"]
    assert report(result).version is None
    assert report(result).function_arn == ACCOUNT_ARN_PREFIX + "f1"


def test_update_changes_only_the_given_field(deployment_service, function_service, make_inputs, package, role_arn):
    deployment_service.deploy(make_inputs(role=role_arn, environment={"A": "1"}), package)
    function_service.calls.clear()

    result = deployment_service.deploy(make_inputs(timeout=10), package)

    config_calls = [c for c in function_service.calls if c[0] == "update_function_configuration"]
    assert config_calls == [("update_function_configuration", "f1", {"timeout": 10}, None)]
    assert function_service.functions["f1"]["config"].environment == {"A": "1"}
    assert report(result).version == "2"


def test_new_package_updates_code(deployment_service, function_service, make_inputs, package, other_package, role_arn):
    deployment_service.deploy(make_inputs(role=role_arn), package)
    deployment_service.deploy(make_inputs(), other_package)
    assert function_service.functions["f1"]["code_sha256"] == other_package.sha256


def test_dry_run_reads_but_never_mutates(deployment_service, function_service, make_inputs, package, role_arn):
    result = deployment_service.deploy(make_inputs(role=role_arn, dry_run=True), package)

    assert function_service.mutating_calls == []
    assert [call[0] for call in function_service.calls] == ["get_function"]
    assert [op.name for op in result.operations_applied] == ["CreateFunction", "PublishVersion"]
    outputs = report(result)
    assert outputs.function_arn is None
    assert outputs.version is None


def test_missing_role_on_create_fails_before_mutation(deployment_service, function_service, make_inputs, package):
    with pytest.raises(ValidationError, match="role is required"):
        deployment_service.deploy(make_inputs(), package)
    assert function_service.mutating_calls == []


def test_dry_run_without_role_on_create_still_fails(deployment_service, function_service, object_store, make_inputs, package):
    with pytest.raises(ValidationError, match="role is required"):
        deployment_service.deploy(make_inputs(dry_run=True), package)
    assert function_service.mutating_calls == []
    assert object_store.objects == {}
    assert object_store.created_buckets == []


def test_invalid_inputs_fail_before_any_remote_call(deployment_service, function_service, make_inputs, package):
    with pytest.raises(ValidationError):
        deployment_service.deploy(make_inputs(memory_size=1), package)
    assert function_service.calls == []


def test_stale_token_makes_zero_mutating_calls(deployment_service, function_service, make_inputs, package):
    function_service.seed("f1", DesiredConfig(timeout=3), code_sha256=package.sha256)
    with pytest.raises(ConcurrencyConflict):
        deployment_service.deploy(make_inputs(timeout=10, revision_id="rev-stale"), package)
    assert function_service.mutating_calls == []


def test_matching_token_is_forwarded_with_first_mutation(deployment_service, function_service, make_inputs, package):
    remote = function_service.seed("f1", DesiredConfig(timeout=3), code_sha256=package.sha256)
    deployment_service.deploy(make_inputs(timeout=10, revision_id=remote.revision_id), package)
    first = function_service.mutating_calls[0]
    assert first[0] == "update_function_configuration"
    assert first[-1] == remote.revision_id


def test_read_fault_aborts_run(deployment_service, function_service, make_inputs, package):
    function_service.get_errors = [ServiceFault("AccessDenied", code="AccessDeniedException")]
    with pytest.raises(ServiceFault) as exc_info:
        deployment_service.deploy(make_inputs(), package)
    assert exc_info.value.operation == "GetFunction"
    assert function_service.mutating_calls == []


def test_oversize_inline_package_is_rejected(deployment_service, function_service, make_inputs, role_arn):
    deployment_service.locator.direct_upload_limit = 8
    big = DeploymentPackage.from_bytes(b"0123456789")
    with pytest.raises(ValidationError, match="direct upload limit"):
        deployment_service.deploy(make_inputs(role=role_arn), big)
    assert function_service.mutating_calls == []


def test_object_store_run_uploads_then_creates(deployment_service, function_service, object_store, make_inputs, package, role_arn):
    deployment_service.deploy(make_inputs(role=role_arn, s3_bucket="artifacts", s3_key="f1/code.zip"), package)

    assert object_store.objects[("artifacts", "f1/code.zip")] == package.zip_bytes
    create = function_service.mutating_calls[0]
    assert create[3] == ObjectStoreRef(bucket="artifacts", key="f1/code.zip", sha256=package.sha256)


def test_missing_bucket_is_provisioned(deployment_service, object_store, make_inputs, package, role_arn):
    deployment_service.deploy(make_inputs(role=role_arn, s3_bucket="fresh", s3_key="f1/code.zip"), package)
    assert object_store.created_buckets == ["fresh"]
    assert ("fresh", "f1/code.zip") in object_store.objects


def test_dry_run_never_provisions_buckets(deployment_service, object_store, make_inputs, package, role_arn):
    deployment_service.deploy(
        make_inputs(role=role_arn, s3_bucket="fresh", s3_key="f1/code.zip", dry_run=True), package
    )
    assert object_store.created_buckets == []
    assert object_store.objects == {}


def test_prepare_returns_plan_without_executing(deployment_service, function_service, make_inputs, package, role_arn):
    plan = deployment_service.prepare(make_inputs(role=role_arn), package)
    assert [op.name for op in plan.operations] == ["CreateFunction", "PublishVersion"]
    assert function_service.mutating_calls == []


def test_example_scenario(deployment_service, function_service, make_inputs, package, role_arn):
    """Create f1, re-run unchanged, then raise its timeout from 3 to 10."""
    first = report(deployment_service.deploy(make_inputs(role=role_arn), package))
    assert (first.function_arn, first.version) == (ACCOUNT_ARN_PREFIX + "f1", "1")

    function_service.calls.clear()
    second = report(deployment_service.deploy(make_inputs(role=role_arn), package))
    assert function_service.mutating_calls == []
    assert second.version is None

    third = report(deployment_service.deploy(make_inputs(timeout=10), package))
    assert function_service.functions["f1"]["config"].timeout == 10
    assert third.version == "2"
