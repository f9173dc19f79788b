from fndeploy.kernel.contracts import DeploymentResult, FunctionIdentity, NoOp, PublishVersion
from fndeploy.kernel.report import DeploymentOutputs, report

F1 = FunctionIdentity("f1")
ARN = "arn:aws:lambda:us-east-1:123456789012:function:f1"


def test_version_reported_after_publish():
    result = DeploymentResult(ARN, "7", (PublishVersion(identity=F1),), dry_run=False)
    assert report(result) == DeploymentOutputs(function_arn=ARN, version="7")


def test_no_version_without_publish():
    result = DeploymentResult(ARN, None, (NoOp(identity=F1),), dry_run=False)
    assert report(result).version is None


def test_no_version_for_simulated_publish():
    result = DeploymentResult(ARN, "7", (PublishVersion(identity=F1, simulated=True),), dry_run=True)
    assert report(result).version is None


def test_outputs_render_missing_values_as_empty():
    assert DeploymentOutputs(function_arn=None, version=None).as_dict() == {"function-arn": "", "version": ""}
