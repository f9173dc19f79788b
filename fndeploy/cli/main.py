from pathlib import Path
from typing import Optional

import typer

from fndeploy.cli.commands import (
    deploy,
    plan,
    version,
)
from fndeploy.internal.logging import setup_logging
from fndeploy.internal.paths import get_log_file

app = typer.Typer(
    name="fndeploy",
    help="Reconcile a serverless function with its declared definition.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write JSON logs to this file."),
    log_json: bool = typer.Option(
        False, "--log-json", help="Also write JSON logs to the default log file in ~/.fndeploy/logs."
    ),
):
    if log_file is None and log_json:
        log_file = get_log_file()
    setup_logging(log_level_name=log_level, log_file_path=log_file)


app.command("deploy")(deploy.deploy)
app.command("plan")(plan.plan)
app.command("version")(version.version)

if __name__ == "__main__":
    app()
