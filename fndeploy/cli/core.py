"""
Core, reusable logic for CLI commands, decoupled from Typer.
Responsible for wiring clients, loading code and publishing outputs.
"""
import os
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from rich.console import Console
from rich.table import Table

from fndeploy.adapters.aws_lambda import BotoFunctionService
from fndeploy.adapters.aws_s3 import BotoObjectStore
from fndeploy.adapters.packaging_fs import build_package, read_package
from fndeploy.internal.config import Settings
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.artifacts import DeploymentPackage
from fndeploy.kernel.contracts import DeploymentPlan
from fndeploy.kernel.deployment import DeploymentService
from fndeploy.kernel.errors import DeployError, PartialSuccess, ValidationError
from fndeploy.kernel.execution import StepCallback
from fndeploy.kernel.report import DeploymentOutputs

logger = get_logger(__name__)

# ---------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------

def create_service(settings: Settings, on_step: Optional[StepCallback] = None) -> DeploymentService:
    """
    Build a DeploymentService over real AWS clients. Credentials come from
    the standard boto3 resolution chain.
    """
    session = boto3.session.Session(profile_name=settings.profile, region_name=settings.region)
    lambda_client = session.client("lambda", endpoint_url=settings.endpoint_url)
    s3_client = session.client("s3", endpoint_url=settings.endpoint_url)
    logger.debug("AWS clients created", region=session.region_name, endpoint_url=settings.endpoint_url)
    return DeploymentService(
        BotoFunctionService(
            lambda_client,
            wait_delay=max(1, int(settings.poll_interval_seconds)),
            wait_max_attempts=max(1, int(settings.max_wait_seconds // settings.poll_interval_seconds)),
        ),
        BotoObjectStore(s3_client),
        settings=settings,
        on_step=on_step,
    )


def load_package(code_dir: Optional[Path], zip_file: Optional[Path]) -> Optional[DeploymentPackage]:
    if code_dir is not None and zip_file is not None:
        raise ValidationError(["--code-dir and --zip-file are mutually exclusive"])
    if code_dir is not None:
        return build_package(code_dir)
    if zip_file is not None:
        return read_package(zip_file)
    return None


def compact(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Drop options that were not given so the model sees them as unset."""
    return {k: v for k, v in raw.items() if v is not None}

# ---------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------

def publish_outputs(outputs: DeploymentOutputs, output_file: Optional[str] = None) -> None:
    """
    Append outputs to the pipeline's output file ($GITHUB_OUTPUT) when there is one.
    """
    output_file = output_file or os.environ.get("GITHUB_OUTPUT")
    if not output_file:
        return
    with open(output_file, "a", encoding="utf-8") as f:
        for name, value in outputs.as_dict().items():
            f.write(f"{name}={value}\n")
    logger.info("Outputs written", path=output_file)


def render_plan(console: Console, plan: DeploymentPlan) -> None:
    table = Table(title=f"Plan for {plan.identity.name} ({plan.branch.value})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Operation", style="cyan", no_wrap=True)
    table.add_column("Details")
    table.add_column("Guard", style="yellow")

    for index, op in enumerate(plan.operations, start=1):
        guard = getattr(op, "revision_id", None) or ""
        table.add_row(str(index), op.name, op.describe(), guard)
    console.print(table)


def render_error(console: Console, exc: DeployError) -> None:
    console.print(f"[red]Deployment failed:[/red] {exc.describe()}")
    if isinstance(exc, ValidationError) and len(exc.violations) > 1:
        for violation in exc.violations:
            console.print(f"  - {violation}")
    if isinstance(exc, PartialSuccess):
        console.print("[yellow]Remote state changed before the failure; these steps completed:[/yellow]")
        for op in exc.completed:
            console.print(f"  - {op.name}: {op.describe()}")
        for call in exc.cause.applied:
            console.print(f"  - {exc.failed}: {call}")
