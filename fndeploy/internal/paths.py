import os
from pathlib import Path

from fndeploy.internal.constants import LOG_FILE_NAME


# ---------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------

def get_app_data_dir() -> Path:
    """
    Returns the application data directory.

    - Windows: %APPDATA%\\fndeploy
    - Linux/macOS: ~/.fndeploy
    """
    if os.name == "nt":  # Windows
        base = os.environ.get("APPDATA", str(Path.home()))
        path = Path(base) / "fndeploy"
    else:  # Linux / macOS
        path = Path.home() / ".fndeploy"

    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logs_dir() -> Path:
    path = get_app_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_log_file() -> Path:
    """
    JSON log file used when file logging is requested without an explicit path.
    """
    return get_logs_dir() / LOG_FILE_NAME
