"""
Content-addressed blob store for VibeSnap.

Blobs live at ``objects/<sha256 hex>`` and are written once: a put of
content already present is a no-op, and new content goes through a temp
file that is then moved into place.
"""

import hashlib
import os
import tempfile
from pathlib import Path
import aiofiles
import aiofiles.os

from ..utils.logging import get_logger
from ..utils.errors import ObjectNotFoundError, error_context

logger = get_logger(__name__)


class ObjectStore:
    """Content-addressed storage under ``.vibe/objects``

    Each blob lives in a file named by the lowercase hex SHA-256 of its
    content. Blobs are written once and never modified or deleted.
    """

    def __init__(self, objects_path: Path):
        self.objects_path = Path(objects_path)

    @staticmethod
    def hash_bytes(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def path_for(self, content_hash: str) -> Path:
        return self.objects_path / content_hash

    async def exists(self, content_hash: str) -> bool:
        return await aiofiles.os.path.exists(self.path_for(content_hash))

    async def put(self, data: bytes) -> str:
        """Store data and return its hash.

        Storing content that is already present is a no-op.
        """
        content_hash = self.hash_bytes(data)
        object_path = self.path_for(content_hash)

        if await aiofiles.os.path.exists(object_path):
            logger.debug("object_dedup_hit", hash=content_hash)
            return content_hash

        with error_context("object_store", "put", hash=content_hash):
            await aiofiles.os.makedirs(self.objects_path, exist_ok=True)
            # Write beside the target and rename so a reader never sees a partial blob
            fd, tmp_name = tempfile.mkstemp(dir=self.objects_path, prefix=".tmp-")
            os.close(fd)
            try:
                async with aiofiles.open(tmp_name, 'wb') as f:
                    await f.write(data)
                await aiofiles.os.replace(tmp_name, object_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

        logger.debug("object_stored", hash=content_hash, size=len(data))
        return content_hash

    async def get(self, content_hash: str) -> bytes:
        """Read a blob.

        Raises:
            ObjectNotFoundError: if no blob with that hash is stored
        """
        object_path = self.path_for(content_hash)
        if not await aiofiles.os.path.exists(object_path):
            raise ObjectNotFoundError(content_hash)

        with error_context("object_store", "get", hash=content_hash):
            async with aiofiles.open(object_path, 'rb') as f:
                return await f.read()
