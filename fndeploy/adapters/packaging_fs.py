"""
Builds deployment packages from the local filesystem.

Archives are deterministic: entries are sorted and carry a fixed timestamp,
so the same sources always hash to the same CodeSha256.
"""
import io
import os
import stat
import zipfile
from pathlib import Path

from fndeploy.internal.logging import get_logger
from fndeploy.kernel.artifacts import DeploymentPackage
from fndeploy.kernel.errors import ValidationError

logger = get_logger(__name__)

_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_EXCLUDED_DIRS = {"__pycache__", ".git"}


def _iter_files(source_dir: Path):
    for root, dirs, files in os.walk(source_dir):
        dirs[:] = sorted(d for d in dirs if d not in _EXCLUDED_DIRS)
        for name in sorted(files):
            yield Path(root) / name


def build_package(source_dir: Path) -> DeploymentPackage:
    """Zip every file under `source_dir`, with paths relative to it."""
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise ValidationError([f"code directory '{source_dir}' does not exist"])

    buffer = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for path in _iter_files(source_dir):
            arcname = path.relative_to(source_dir).as_posix()
            info = zipfile.ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
            mode = path.stat().st_mode
            # Keep the executable bit, normalize everything else.
            perms = 0o755 if mode & stat.S_IXUSR else 0o644
            info.external_attr = (stat.S_IFREG | perms) << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, path.read_bytes())
            count += 1

    if count == 0:
        raise ValidationError([f"code directory '{source_dir}' is empty"])

    package = DeploymentPackage.from_bytes(buffer.getvalue(), source=str(source_dir))
    logger.info("Package built", source=str(source_dir), files=count, size=package.size, sha256=package.sha256)
    return package


def read_package(zip_path: Path) -> DeploymentPackage:
    """Load an already-built zip file."""
    zip_path = Path(zip_path)
    if not zip_path.is_file():
        raise ValidationError([f"zip file '{zip_path}' does not exist"])
    data = zip_path.read_bytes()
    if not zipfile.is_zipfile(io.BytesIO(data)):
        raise ValidationError([f"'{zip_path}' is not a zip archive"])
    return DeploymentPackage.from_bytes(data, source=str(zip_path))
