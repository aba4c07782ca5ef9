"""
Object storage client for the hosted bucket
"""
import re
from typing import Optional
from urllib.parse import quote, unquote, urlsplit
import logging

from .backend import BackendClient
from ..config import settings

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "/storage/v1"

_OBJECT_URL_PATTERN = re.compile(r"/storage/v1/object/(?:public|sign|authenticated)/[^/]+/(.+)$")


def extract_storage_path(url_or_path: str) -> str:
    """
    Bare object path from a previously issued public URL

    'https://x.supabase.co/storage/v1/object/public/images/uploads/a.jpg'
    becomes 'uploads/a.jpg'. Plain paths are returned unchanged.
    """
    value = url_or_path.strip()
    if not value.startswith(("http://", "https://")):
        return value.lstrip("/")

    path = urlsplit(value).path
    match = _OBJECT_URL_PATTERN.search(path)
    if not match:
        # Not a storage URL; fall back to the last path segment
        return unquote(path.rsplit("/", 1)[-1])
    return unquote(match.group(1))


class StorageManager:
    """Manage image objects in the hosted storage bucket"""

    def __init__(self, backend: BackendClient, bucket: str = settings.STORAGE_BUCKET):
        self.backend = backend
        self.bucket_name = bucket

    async def upload_file(
        self,
        data: bytes,
        key: str,
        content_type: str = "image/jpeg",
        upsert: bool = False,
    ) -> str:
        """
        Upload file to storage

        Args:
            data: File contents
            key: Object key (path) in the bucket
            content_type: MIME type
            upsert: Overwrite an existing object

        Returns:
            The stored object path
        """
        await self.backend.request(
            "POST",
            f"{STORAGE_PREFIX}/object/{self.bucket_name}/{quote(key)}",
            content=data,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
            },
        )
        logger.info(f"Uploaded {key} to {self.bucket_name}")
        return key

    def get_public_url(self, key: Optional[str]) -> str:
        """Absolute public URL for an object path; URLs pass through unchanged"""
        if not key:
            return ""
        if key.startswith(("http://", "https://")):
            return key
        return (
            f"{self.backend.base_url}{STORAGE_PREFIX}/object/public/"
            f"{self.bucket_name}/{quote(key.lstrip('/'))}"
        )

    async def delete_file(self, url_or_key: str) -> None:
        """Delete an object given its path or a public URL pointing at it"""
        key = extract_storage_path(url_or_key)
        await self.backend.request(
            "DELETE",
            f"{STORAGE_PREFIX}/object/{self.bucket_name}",
            json={"prefixes": [key]},
        )
        logger.info(f"Deleted {key} from {self.bucket_name}")
