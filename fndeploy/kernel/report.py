"""
Result Reporter: the two published outputs of a run.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from fndeploy.kernel.contracts import DeploymentResult, PublishVersion


@dataclass(frozen=True)
class DeploymentOutputs:
    function_arn: Optional[str]
    version: Optional[str]

    def as_dict(self) -> Dict[str, str]:
        return {
            "function-arn": self.function_arn or "",
            "version": self.version or "",
        }


def report(result: DeploymentResult) -> DeploymentOutputs:
    """
    The version is reported only when a PublishVersion step really executed.
    """
    published = any(
        isinstance(op, PublishVersion) and not op.simulated
        for op in result.operations_applied
    )
    version = result.published_version if published and not result.dry_run else None
    return DeploymentOutputs(function_arn=result.function_arn, version=version)
