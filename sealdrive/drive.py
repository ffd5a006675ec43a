from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from . import encryption
from .config import StorageConfig
from .constants import BACKEND_IPFS
from .resolver import FileRecord, FileResolver
from .storage import StorageBackend, open_storage


class SealDrive:
    """Single entry point for storage, identity resolution and encryption.

    Args:
        backend_kind: Primary storage implementation (``"ipfs"`` or ``"local"``).
            Unsupported kinds raise ``ConfigurationError`` here, not on first use.
        backend_config: ``StorageConfig`` or a mapping with ``host``/``port``/``protocol``.
        local_root: Directory for the local (fallback) store.
        storage: Pre-built backend; overrides ``backend_kind`` and ``backend_config``.
    """

    def __init__(
        self,
        backend_kind: str = BACKEND_IPFS,
        backend_config: Union[StorageConfig, Mapping[str, Any], None] = None,
        *,
        local_root: Optional[str] = None,
        storage: Optional[StorageBackend] = None,
    ):
        if storage is None:
            if not isinstance(backend_config, StorageConfig):
                backend_config = StorageConfig.from_mapping(backend_config)
            storage = open_storage(backend_kind, backend_config, local_root=local_root)
        self.storage = storage
        self.resolver = FileResolver(storage)

    async def upload_file(
        self,
        path: str,
        *,
        file_id: Optional[str] = None,
        content_type: Optional[str] = None,
        encrypted: bool = False,
    ) -> str:
        return await self.resolver.upload(path, file_id=file_id, content_type=content_type, encrypted=encrypted)

    async def download_file(self, file_id: str, destination: str) -> str:
        return await self.resolver.download(file_id, destination)

    async def delete_file(self, file_id: str) -> bool:
        return await self.resolver.delete(file_id)

    async def list_files(self) -> List[FileRecord]:
        return await self.resolver.list()

    async def encrypt_file(self, path: str, password: str, *, output_path: Optional[str] = None) -> str:
        return await encryption.encrypt_file(path, password, output_path=output_path)

    async def decrypt_file(self, path: str, password: str, *, output_path: Optional[str] = None) -> str:
        return await encryption.decrypt_file(path, password, output_path=output_path)
