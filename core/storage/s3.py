"""S3 storage for user uploads (profile pictures, resumes, post media)."""

import logging
import mimetypes
import uuid
from enum import Enum
from typing import BinaryIO, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import settings
from core.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)


class UploadFolder(str, Enum):
    PROFILE_PICTURES = "profile-pictures"
    RESUMES = "resumes"
    POST_MEDIA = "post-media"
    COMPANY_LOGOS = "company-logos"


class NamingStrategy(str, Enum):
    UUID = "uuid"  # fresh random name per upload
    OWNER = "owner"  # stable name per owner, re-uploads overwrite


IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
DOCUMENT_TYPES = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

ALLOWED_CONTENT_TYPES = {
    UploadFolder.PROFILE_PICTURES: IMAGE_TYPES,
    UploadFolder.COMPANY_LOGOS: IMAGE_TYPES,
    UploadFolder.POST_MEDIA: IMAGE_TYPES | {"video/mp4"},
    UploadFolder.RESUMES: DOCUMENT_TYPES,
}


def _get_credentials() -> dict:
    return {
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
        "region_name": settings.aws_region,
    }


class S3Storage:
    """S3 storage handler for async operations."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        public_base_url: Optional[str] = None,
        max_size: Optional[int] = None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name (uses AWS_S3_BUCKET if not provided)
            public_base_url: Base URL objects are served from
                (defaults to the bucket's virtual-hosted S3 URL)
            max_size: Maximum upload size in bytes (uses MAX_UPLOAD_SIZE)
        """
        self.bucket_name = bucket_name or settings.aws_s3_bucket
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and AWS_S3_BUCKET not set")
        self.public_base_url = (
            public_base_url
            or settings.storage_public_base_url
            or f"https://{self.bucket_name}.s3.{settings.aws_region}.amazonaws.com"
        ).rstrip("/")
        self.max_size = max_size or settings.max_upload_size
        self.credentials = _get_credentials()

    def build_key(
        self,
        folder: UploadFolder,
        content_type: str,
        naming_strategy: NamingStrategy,
        owner_id: Optional[int] = None,
    ) -> str:
        extension = mimetypes.guess_extension(content_type) or ""
        if naming_strategy == NamingStrategy.OWNER:
            if owner_id is None:
                raise ValueError("owner naming strategy requires an owner_id")
            name = f"user-{owner_id}"
        else:
            name = uuid.uuid4().hex
        return f"{folder.value}/{name}{extension}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Inverse of ``public_url``; None for URLs outside this bucket."""
        prefix = f"{self.public_base_url}/"
        return url[len(prefix):] if url and url.startswith(prefix) else None

    def validate(self, folder: UploadFolder, content_type: str, size: int) -> None:
        if content_type not in ALLOWED_CONTENT_TYPES[folder]:
            raise ValidationError(f"File type {content_type} is not allowed for {folder.value}")
        if size == 0:
            raise ValidationError("Uploaded file is empty")
        if size > self.max_size:
            raise ValidationError(
                f"File exceeds the maximum size of {self.max_size // (1024 * 1024)} MB"
            )

    async def upload(
        self,
        file_data: bytes | BinaryIO,
        folder: UploadFolder,
        content_type: str,
        naming_strategy: NamingStrategy = NamingStrategy.UUID,
        owner_id: Optional[int] = None,
    ) -> str:
        """
        Upload a file and return its public URL.

        Args:
            file_data: File data (bytes or file-like object)
            folder: Destination folder; decides which content types are accepted
            content_type: MIME type of the file
            naming_strategy: ``uuid`` for a random name, ``owner`` for a stable one
            owner_id: Owner id, required by the ``owner`` strategy

        Returns:
            Public URL of the stored object

        Raises:
            ValidationError: type not allowed for the folder, empty or too large
            ExternalServiceError: the storage call failed
        """
        body = file_data if isinstance(file_data, bytes) else file_data.read()
        self.validate(folder, content_type, len(body))
        key = self.build_key(folder, content_type, naming_strategy, owner_id)

        session = aioboto3.Session(**self.credentials)
        try:
            async with session.client("s3") as client:
                await client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {self.bucket_name}/{key}: {e}")
            raise ExternalServiceError("File upload failed") from e

        logger.info(f"Uploaded file to S3: {self.bucket_name}/{key}")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        """
        Delete file from S3.

        Args:
            key: S3 object key

        Returns:
            True if deleted successfully
        """
        session = aioboto3.Session(**self.credentials)
        try:
            async with session.client("s3") as client:
                await client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 delete failed for {self.bucket_name}/{key}: {e}")
            raise ExternalServiceError("File delete failed") from e

        logger.info(f"Deleted file from S3: {self.bucket_name}/{key}")
        return True


_storage: Optional[S3Storage] = None


def get_storage() -> S3Storage:
    global _storage
    if _storage is None:
        _storage = S3Storage()
    return _storage
