# storage.py
import logging
import mimetypes
import time
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Callable, NamedTuple, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from config import config
from errors import MediaError, NotFound, TooLarge, UploadFailed

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0

# Network-level failures worth another attempt; everything else fails at once
TRANSIENT_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionError,
)

FOLDERS = {
    "video": "lms_videos",
    "pdf": "lms_documents",
    "image": "lms_images",
}

transfer_config = TransferConfig(
    multipart_threshold=1024 * 1024 * 25,
    multipart_chunksize=1024 * 1024 * 6,
    max_concurrency=5,
    use_threads=True,
)


class MediaAsset(NamedTuple):
    url: str
    delete_key: str


def _remove_local(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"Error deleting temp file {path}: {e}")


class MediaStore:
    """Uploads local files to the S3-compatible media host and deletes them by key"""

    def __init__(
        self,
        client,
        bucket: str,
        public_base_url: str = "",
        max_bytes: int = 100 * 1024 * 1024,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def build_key(self, kind: str, filename: str) -> str:
        ext = Path(filename).suffix.lower()
        if kind == "pdf":
            ext = ".pdf"
        stamp = int(time.time() * 1000)
        return f"{FOLDERS.get(kind, FOLDERS['image'])}/{kind}_{stamp}_{uuid.uuid4().hex[:8]}{ext}"

    def upload(self, local_path, kind: str = "image") -> MediaAsset:
        """
        Upload ``local_path`` and return its URL and deletion key.

        The local file is removed whether the upload succeeds or not.
        Transient network errors are retried with exponential backoff.
        """
        path = Path(local_path)
        if not path.exists():
            raise NotFound(f"File does not exist: {path}")

        try:
            size = path.stat().st_size
            if size > self.max_bytes:
                raise TooLarge(f"File size exceeds {self.max_bytes // (1024 * 1024)}MB limit")

            key = self.build_key(kind, path.name)
            content_type = "application/pdf" if kind == "pdf" else (
                mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            )
            logger.info(f"Uploading {path.name} ({size} bytes) as {kind} -> {key}")

            attempt = 0
            while True:
                attempt += 1
                try:
                    self.client.upload_file(
                        str(path),
                        self.bucket,
                        key,
                        ExtraArgs={"ContentType": content_type},
                        Config=transfer_config,
                    )
                    break
                except TRANSIENT_ERRORS as e:
                    logger.warning(f"Upload attempt {attempt} for {key} failed: {e}")
                    if attempt >= self.max_attempts:
                        raise UploadFailed(f"Failed to upload {kind} after {attempt} attempts")
                    wait = self.base_delay * (2 ** attempt)
                    logger.info(f"Waiting {wait:.1f}s before retry")
                    self.sleep(wait)
                except (ClientError, BotoCoreError, S3UploadFailedError) as e:
                    logger.error(f"Upload of {key} failed: {e}")
                    raise UploadFailed(f"Failed to upload {kind}: {e}")
        finally:
            _remove_local(path)

        asset = MediaAsset(url=self.public_url(key), delete_key=key)
        logger.info(f"Upload complete: {asset.url}")
        return asset

    def delete(self, delete_key: str, kind: str = "image") -> bool:
        """Delete an object; a missing object is not an error"""
        if not delete_key:
            return False
        logger.info(f"Deleting {kind} media {delete_key}")
        try:
            self.client.delete_object(Bucket=self.bucket, Key=delete_key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                logger.info(f"Media {delete_key} already gone")
                return False
            raise MediaError(f"Failed to delete media: {code or e}")
        except BotoCoreError as e:
            raise MediaError(f"Failed to delete media: {e}")
        return True

    def ping(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except (ClientError, BotoCoreError):
            return False


def create_s3_client():
    kwargs = {
        "aws_access_key_id": config.AWS_ACCESS_KEY or None,
        "aws_secret_access_key": config.AWS_SECRET_KEY or None,
        "region_name": config.REGION_NAME,
    }
    if config.MEDIA_ENDPOINT_URL:
        kwargs["endpoint_url"] = config.MEDIA_ENDPOINT_URL
    return boto3.client("s3", **kwargs)


@lru_cache()
def get_media_store() -> MediaStore:
    return MediaStore(
        create_s3_client(),
        config.BUCKET_NAME,
        public_base_url=config.MEDIA_PUBLIC_BASE_URL,
        max_bytes=config.max_upload_bytes,
    )


def best_effort_delete(media: MediaStore, delete_key: Optional[str], kind: str) -> None:
    """Delete remote media, logging instead of raising on failure"""
    if not delete_key:
        return
    try:
        media.delete(delete_key, kind)
    except Exception as e:
        logger.warning(f"Could not delete {kind} media {delete_key}: {e}")
