"""
Receipt upload helper shared by the ledger and recurring billing.

Files are stored under a folder prefix with a collision-resistant name
(millisecond timestamp plus a random suffix), then exposed through a
signed URL. The URL, not the storage path, is what transactions keep.
"""

import time
from typing import Optional
from uuid import UUID, uuid4

import structlog

from vela_ledger.audit import AuditLogger
from vela_ledger.models.transaction import FileUpload
from vela_ledger.services.storage import ObjectStorageInterface, UploadError

logger = structlog.get_logger(__name__)


def build_upload_path(folder: str, extension: str, name_prefix: str = "") -> str:
    """e.g. ``receipts/membresia_1718035200000_k3j9x2.pdf``"""
    stamp = int(time.time() * 1000)
    suffix = uuid4().hex[:8]
    name = f"{name_prefix}{stamp}_{suffix}"
    if extension:
        name = f"{name}.{extension}"
    return f"{folder}/{name}"


class ReceiptUploader:
    """Uploads a file and returns a time-limited URL for it."""

    def __init__(
        self,
        object_storage: ObjectStorageInterface,
        signed_url_ttl: int,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = object_storage
        self._ttl = signed_url_ttl
        self._audit = audit_logger or AuditLogger()

    async def upload(
        self,
        upload: FileUpload,
        folder: str,
        correlation_id: UUID,
        name_prefix: str = "",
    ) -> str:
        """
        Store the file and issue a signed URL.

        Raises:
            UploadError: If either the upload or the URL signing fails
        """
        path = build_upload_path(folder, upload.extension, name_prefix)
        try:
            await self._storage.upload(path, upload.content, upload.content_type)
            url = await self._storage.create_signed_url(path, self._ttl)
        except UploadError as e:
            await self._audit.log_upload_failed(upload.filename, str(e), correlation_id)
            raise
        if not url:
            await self._audit.log_upload_failed(upload.filename, "empty signed URL", correlation_id)
            raise UploadError("Could not create a signed link for the file")

        await self._audit.log_receipt_uploaded(path, upload.size_bytes, correlation_id)
        return url
