"""Logical file ids over backend-assigned storage ids.

The registry lives in memory only; a new process starts empty and callers
must then address objects by their raw backend id. Unknown ids are passed
through to the storage capability unchanged, which is what makes that work.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os

from .constants import DEFAULT_CONTENT_TYPE
from .errors import NotFound, OperationFailure
from .storage import StorageBackend


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileRecord:
    file_id: str
    backend_id: str
    name: str
    size: int
    content_type: str = DEFAULT_CONTENT_TYPE
    created_at: datetime = field(default_factory=_utcnow)
    encrypted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.file_id,
            "backendId": self.backend_id,
            "name": self.name,
            "size": self.size,
            "contentType": self.content_type,
            "createdAt": self.created_at.isoformat(),
            "encrypted": self.encrypted,
        }


def new_file_id() -> str:
    return str(uuid.uuid4())


class FileResolver:
    """Map logical file ids to storage ids.

    The storage backend is borrowed, not owned. Records are inserted only
    after the backend confirms an upload and removed only after it confirms
    a delete; they are never edited in place.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._records: Dict[str, FileRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._records

    def get(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    def _resolve(self, file_id: str) -> str:
        record = self._records.get(file_id)
        return record.backend_id if record is not None else file_id

    async def upload(
        self,
        path: str,
        *,
        file_id: Optional[str] = None,
        content_type: Optional[str] = None,
        encrypted: bool = False,
    ) -> str:
        """Upload the file at ``path`` and register it.

        Args:
            path: Local source file.
            file_id: Logical id to use; a random UUID is generated otherwise.
                An existing record with the same id is replaced.
            content_type: MIME type recorded with the file.
            encrypted: Marks the content as an encrypted envelope.

        Returns:
            The logical file id.

        Raises:
            OperationFailure: the source could not be read or the backend failed.
        """
        try:
            try:
                async with aiofiles.open(path, "rb") as fh:
                    data = await fh.read()
            except FileNotFoundError:
                raise NotFound(f"File not found: {path}") from None
            name = os.path.basename(path)
            backend_id = await self.storage.upload(data, name=name)
        except Exception as exc:
            raise OperationFailure("upload", path, exc) from exc

        record = FileRecord(
            file_id=file_id or new_file_id(),
            backend_id=backend_id,
            name=name,
            size=len(data),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            encrypted=encrypted,
        )
        async with self._lock:
            self._records[record.file_id] = record
        logger.debug(f"Registered {record.file_id} -> {backend_id}")
        return record.file_id

    async def download(self, file_id: str, destination: str) -> str:
        """Fetch ``file_id`` into ``destination`` and return the path.

        Unregistered ids are treated as backend ids.
        """
        backend_id = self._resolve(file_id)
        try:
            data = await self.storage.download(backend_id)
            parent = os.path.dirname(destination)
            if parent:
                await aiofiles.os.makedirs(parent, exist_ok=True)
            async with aiofiles.open(destination, "wb") as fh:
                await fh.write(data)
        except Exception as exc:
            raise OperationFailure("download", file_id, exc) from exc
        return destination

    async def delete(self, file_id: str) -> bool:
        backend_id = self._resolve(file_id)
        try:
            ok = await self.storage.delete(backend_id)
        except Exception as exc:
            raise OperationFailure("delete", file_id, exc) from exc
        if ok:
            async with self._lock:
                if self._records.pop(file_id, None) is not None:
                    logger.debug(f"Unregistered {file_id}")
        return ok

    async def list(self) -> List[FileRecord]:
        return list(self._records.values())
