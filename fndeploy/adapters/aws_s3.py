"""
A concrete ObjectStore backed by a boto3 "s3" client.
"""
from botocore.exceptions import ClientError

from fndeploy.adapters.aws_errors import NOT_FOUND_CODES, translate_client_error, translating
from fndeploy.internal.logging import get_logger

logger = get_logger(__name__)

# us-east-1 rejects an explicit location constraint.
_DEFAULT_REGION = "us-east-1"


class BotoObjectStore:
    def __init__(self, client):
        self.client = client

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                return False
            raise translate_client_error(exc, "HeadBucket") from exc
        return True

    def create_bucket(self, bucket: str) -> None:
        params = {"Bucket": bucket}
        region = self.client.meta.region_name
        if region and region != _DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        logger.info("Creating bucket", bucket=bucket, region=region)
        with translating("CreateBucket"):
            self.client.create_bucket(**params)

    def put_object(self, bucket: str, key: str, body: bytes) -> None:
        with translating("PutObject"):
            self.client.put_object(Bucket=bucket, Key=key, Body=body)
