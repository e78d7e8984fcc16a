import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from lexdms.config import settings

logger = logging.getLogger(__name__)


class StorageService:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not StorageService.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def object_exists(storage_key: str) -> bool:
        client = StorageService._get_client()
        try:
            client.head_object(Bucket=settings.s3_bucket_name, Key=storage_key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    @staticmethod
    def delete_object(storage_key: str) -> None:
        client = StorageService._get_client()
        client.delete_object(Bucket=settings.s3_bucket_name, Key=storage_key)
        logger.info("Deleted storage object %s", storage_key)


storage = StorageService()
