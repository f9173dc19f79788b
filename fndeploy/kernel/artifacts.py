"""
Artifact Locator.

Turns a packaging choice into a CodeSource: the package bytes themselves, a
reference to an object in the object store (uploading it first when a package
was supplied), or a container image reference. Packaging a directory is done
by an adapter; the locator consumes a ready-made DeploymentPackage.
"""
import base64
import hashlib
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from fndeploy.internal import constants
from fndeploy.internal.logging import get_logger
from fndeploy.kernel.contracts import CodeSource, ImageRef, InlineCode, ObjectStore, ObjectStoreRef
from fndeploy.kernel.errors import BucketProvisioningRequired, ValidationError

logger = get_logger(__name__)


def compute_code_sha256(data: bytes) -> str:
    """Base64 SHA-256 digest, the format the function service reports as CodeSha256."""
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


@dataclass(frozen=True)
class DeploymentPackage:
    """A zipped deployment package and its checksum."""
    zip_bytes: bytes = field(repr=False)
    sha256: str
    source: Optional[str] = None

    @classmethod
    def from_bytes(cls, data: bytes, source: Optional[str] = None) -> "DeploymentPackage":
        return cls(zip_bytes=data, sha256=compute_code_sha256(data), source=source)

    @property
    def size(self) -> int:
        return len(self.zip_bytes)


@dataclass(frozen=True)
class ArtifactRequest:
    function_name: str
    mode: str  # "direct", "object-store" or "image"
    package: Optional[DeploymentPackage] = None
    bucket: Optional[str] = None
    key: Optional[str] = None
    image_uri: Optional[str] = None
    dry_run: bool = False


def generate_object_key(function_name: str, sha256: str, now: Optional[float] = None) -> str:
    """
    Key unique enough to keep concurrent runs from overwriting each other's uploads.
    """
    stamp = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime(now if now is not None else time.time()))
    digest = hashlib.sha256(sha256.encode("ascii")).hexdigest()[:16]
    short_name = function_name.rsplit(":", 1)[-1]
    return f"{short_name}/{stamp}-{digest}.zip"


class ArtifactLocator:
    """
    Produces the CodeSource for a run. The only side effect is the upload it
    delegates to the object store.
    """

    def __init__(
        self,
        object_store: Optional[ObjectStore] = None,
        direct_upload_limit: int = constants.DIRECT_UPLOAD_LIMIT_BYTES,
        clock: Callable[[], float] = time.time,
    ):
        self.object_store = object_store
        self.direct_upload_limit = direct_upload_limit
        self._clock = clock

    def locate(self, request: ArtifactRequest) -> CodeSource:
        if request.mode == "direct":
            return self._locate_direct(request)
        if request.mode == "object-store":
            return self._locate_object_store(request)
        if request.mode == "image":
            return self._locate_image(request)
        raise ValidationError([f"unknown packaging mode {request.mode!r}"], function_name=request.function_name)

    def _locate_direct(self, request: ArtifactRequest) -> InlineCode:
        package = request.package
        if package is None:
            raise ValidationError(["a code package is required for direct packaging"], function_name=request.function_name)
        if package.size > self.direct_upload_limit:
            raise ValidationError(
                [
                    f"package is {package.size} bytes, above the {self.direct_upload_limit} byte "
                    "direct upload limit; use object-store packaging"
                ],
                function_name=request.function_name,
            )
        logger.info("Using direct code upload", function_name=request.function_name, size=package.size)
        return InlineCode(zip_bytes=package.zip_bytes, sha256=package.sha256)

    def _locate_object_store(self, request: ArtifactRequest) -> ObjectStoreRef:
        bucket = request.bucket
        if not bucket:
            raise ValidationError(["s3_bucket is required for object-store packaging"], function_name=request.function_name)

        package = request.package
        if package is None:
            if not request.key:
                raise ValidationError(
                    ["s3_key is required when no code package is supplied"], function_name=request.function_name
                )
            logger.info("Using previously uploaded package", bucket=bucket, key=request.key)
            return ObjectStoreRef(bucket=bucket, key=request.key, sha256=None)

        key = request.key or generate_object_key(request.function_name, package.sha256, self._clock())

        if self.object_store is None:
            raise ValidationError(["object-store packaging needs an object store client"], function_name=request.function_name)

        if not self.object_store.bucket_exists(bucket):
            if request.dry_run:
                logger.warning("Bucket does not exist and would be created", bucket=bucket)
                return ObjectStoreRef(bucket=bucket, key=key, sha256=package.sha256)
            raise BucketProvisioningRequired(bucket, function_name=request.function_name, operation="LocateArtifact")

        if request.dry_run:
            logger.info("Dry run: skipping package upload", bucket=bucket, key=key)
        else:
            logger.info("Uploading package", bucket=bucket, key=key, size=package.size)
            self.object_store.put_object(bucket, key, package.zip_bytes)
        return ObjectStoreRef(bucket=bucket, key=key, sha256=package.sha256)

    def _locate_image(self, request: ArtifactRequest) -> ImageRef:
        if not request.image_uri:
            raise ValidationError(["image_uri is required for image packaging"], function_name=request.function_name)
        return ImageRef(image_uri=request.image_uri)
