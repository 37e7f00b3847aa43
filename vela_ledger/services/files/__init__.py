"""Receipt file storage services package."""

from vela_ledger.services.files.cloudinary_service import CloudinaryObjectStorage

__all__ = ["CloudinaryObjectStorage"]
