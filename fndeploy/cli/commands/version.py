"""
`fndeploy version`: the installed fndeploy release and the AWS SDK it talks through.
"""
from importlib import metadata

import typer

from fndeploy.internal.logging import get_logger

logger = get_logger(__name__)

SDK_DISTRIBUTIONS = ("boto3", "botocore")


def _installed(distribution: str) -> str:
    try:
        return metadata.version(distribution)
    except metadata.PackageNotFoundError:
        return "not installed"


def version():
    """Show the fndeploy release and the boto3/botocore versions in use."""
    try:
        release = metadata.version("fndeploy")
    except metadata.PackageNotFoundError:
        logger.warning("Version metadata missing", distribution="fndeploy")
        typer.echo("fndeploy has no version metadata; install it with `pip install -e .`", err=True)
        raise typer.Exit(1)

    typer.echo(f"fndeploy {release}")
    for distribution in SDK_DISTRIBUTIONS:
        typer.echo(f"{distribution} {_installed(distribution)}")
