from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from fndeploy.cli import core
from fndeploy.internal.config import Settings
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.errors import DeployError
from fndeploy.kernel.inputs import parse_inputs
from fndeploy.kernel.report import report

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)


def build_command(plan_only: bool):
    """
    The deploy and plan commands share one option surface; plan forces a dry run
    and renders the plan instead of applying it.
    """

    def command(
        function_name: str = typer.Option(..., "--function-name", help="Name or ARN of the function."),
        code_dir: Optional[Path] = typer.Option(None, "--code-dir", help="Directory to package as the function code."),
        zip_file: Optional[Path] = typer.Option(None, "--zip-file", help="Prebuilt zip package."),
        packaging_mode: Optional[str] = typer.Option(
            None, "--packaging-mode", help="direct, object-store or image. Inferred when omitted."
        ),
        s3_bucket: Optional[str] = typer.Option(None, "--s3-bucket"),
        s3_key: Optional[str] = typer.Option(None, "--s3-key"),
        image_uri: Optional[str] = typer.Option(None, "--image-uri"),
        handler: Optional[str] = typer.Option(None, "--handler"),
        runtime: Optional[str] = typer.Option(None, "--runtime"),
        memory_size: Optional[int] = typer.Option(None, "--memory-size"),
        timeout: Optional[int] = typer.Option(None, "--timeout"),
        architecture: Optional[str] = typer.Option(None, "--architecture"),
        environment: Optional[str] = typer.Option(None, "--environment", help="JSON object of variables."),
        role: Optional[str] = typer.Option(None, "--role"),
        description: Optional[str] = typer.Option(None, "--description"),
        vpc_config: Optional[str] = typer.Option(None, "--vpc-config", help="JSON object."),
        dead_letter_config: Optional[str] = typer.Option(None, "--dead-letter-config", help="SQS or SNS ARN."),
        kms_key_arn: Optional[str] = typer.Option(None, "--kms-key-arn"),
        tracing_mode: Optional[str] = typer.Option(None, "--tracing-mode"),
        layers: Optional[str] = typer.Option(None, "--layers", help="JSON list or comma-separated ARNs."),
        file_system_configs: Optional[str] = typer.Option(None, "--file-system-configs", help="JSON list."),
        image_config: Optional[str] = typer.Option(None, "--image-config", help="JSON object."),
        ephemeral_storage: Optional[int] = typer.Option(None, "--ephemeral-storage"),
        snap_start: Optional[str] = typer.Option(None, "--snap-start"),
        logging_config: Optional[str] = typer.Option(None, "--logging-config", help="JSON object."),
        code_signing_config_arn: Optional[str] = typer.Option(None, "--code-signing-config-arn"),
        tags: Optional[str] = typer.Option(None, "--tags", help="JSON object."),
        publish: bool = typer.Option(True, "--publish/--no-publish"),
        dry_run: bool = typer.Option(True, "--dry-run/--no-dry-run"),
        revision_id: Optional[str] = typer.Option(None, "--revision-id", help="Fail unless the function is at this revision."),
    ):
        raw = core.compact(dict(
            function_name=function_name,
            packaging_mode=packaging_mode,
            s3_bucket=s3_bucket,
            s3_key=s3_key,
            image_uri=image_uri,
            handler=handler,
            runtime=runtime,
            memory_size=memory_size,
            timeout=timeout,
            architecture=architecture,
            environment=environment,
            role=role,
            description=description,
            vpc_config=vpc_config,
            dead_letter_config=dead_letter_config,
            kms_key_arn=kms_key_arn,
            tracing_mode=tracing_mode,
            layers=layers,
            file_system_configs=file_system_configs,
            image_config=image_config,
            ephemeral_storage=ephemeral_storage,
            snap_start=snap_start,
            logging_config=logging_config,
            code_signing_config_arn=code_signing_config_arn,
            tags=tags,
            publish=publish,
            dry_run=True if plan_only else dry_run,
            revision_id=revision_id,
        ))

        def on_step(op, status):
            logger.debug("Step status", operation=op.name, status=status)

        try:
            inputs = parse_inputs(raw)
            package = core.load_package(code_dir, zip_file)
            service = core.create_service(Settings.from_env(), on_step=on_step)

            if plan_only:
                plan = service.prepare(inputs, package)
                core.render_plan(console, plan)
                return

            result = service.deploy(inputs, package)
        except DeployError as exc:
            core.render_error(err_console, exc)
            raise typer.Exit(1)

        outputs = report(result)
        core.publish_outputs(outputs)

        if result.dry_run:
            console.print(f"[yellow]Dry run[/yellow]: {len(result.operations_applied)} operation(s) simulated")
        for op in result.operations_applied:
            console.print(f"  - {op.name}: {op.describe()}")
        for name, value in outputs.as_dict().items():
            typer.echo(f"{name}={value}")

    return command


deploy = build_command(plan_only=False)
deploy.__doc__ = """
Reconcile the function with the given definition, creating or updating it.
"""
