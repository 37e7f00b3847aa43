"""
Receipt File Storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. Handles PDFs, XML and images alike as "raw" resources
2. Private delivery with signed, expiring download URLs
3. Reliable cloud infrastructure
4. Free tier sufficient for a small business ledger

Receipts are uploaded as private raw resources under the configured
bucket folder. Nobody can read them without a signed URL, and every
signed URL expires (30 days by default).
"""

import time
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
import structlog
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from vela_ledger.config import get_settings
from vela_ledger.config.settings import CloudinarySettings
from vela_ledger.services.storage.interface import ObjectStorageInterface, UploadError

logger = structlog.get_logger(__name__)


class CloudinaryObjectStorage(ObjectStorageInterface):
    """
    Object storage backed by Cloudinary private raw uploads.

    Flow:
    1. upload(path, bytes) -> stored under <bucket>/<path>
    2. create_signed_url(path, ttl) -> private download URL valid for ttl seconds
    """

    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, path: str) -> str:
        return f"{self._settings.bucket}/{path.lstrip('/')}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(UploadError),
        reraise=True,
    )
    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload a receipt as a private raw resource.

        Raises:
            UploadError: If Cloudinary rejects the file or returns no id
        """
        self._configure()
        try:
            result = cloudinary.uploader.upload(
                data,
                public_id=self._public_id(path),
                resource_type="raw",
                type="private",
                overwrite=False,
                context={"content_type": content_type},
            )
        except cloudinary.exceptions.Error as e:
            raise UploadError(f"Cloudinary error: {e}")

        if not result.get("public_id"):
            raise UploadError("No public id returned from Cloudinary")

        logger.info("receipt_uploaded", path=path, bytes=len(data))
        return path

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """Build a private download URL that stops working after ``expires_in`` seconds."""
        self._configure()
        try:
            url = cloudinary.utils.private_download_url(
                self._public_id(path),
                "",
                resource_type="raw",
                type="private",
                expires_at=int(time.time()) + expires_in,
            )
        except cloudinary.exceptions.Error as e:
            raise UploadError(f"Could not sign URL for {path}: {e}")

        if not url:
            raise UploadError(f"Could not sign URL for {path}")
        return url
