"""Storage capability: opaque-id byte storage with automatic local fallback.

``IpfsStore`` talks to a Kubo-compatible HTTP RPC endpoint. ``LocalStore`` is a
content-addressed directory. ``FallbackStore`` puts the two behind one
interface: every call goes to the primary first, and a primary error triggers
exactly one attempt on the fallback for that call only.
"""

from __future__ import annotations

import abc
import hashlib
import json
import logging
import os
import re
import tempfile
import uuid
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
import httpx

from .config import StorageConfig
from .constants import BACKEND_IPFS, BACKEND_LOCAL, LOCAL_ID_PREFIX, SUPPORTED_BACKENDS
from .errors import BackendUnavailable, ConfigurationError, NotFound


logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"[A-Za-z0-9_.-]+")


class StorageBackend(abc.ABC):
    """Byte storage addressed by backend-assigned identifiers."""

    @abc.abstractmethod
    async def upload(self, data: bytes, *, name: Optional[str] = None) -> str:
        """Store ``data`` and return an id that retrieves it later."""

    @abc.abstractmethod
    async def download(self, backend_id: str) -> bytes:
        """Return the bytes stored under ``backend_id`` or raise ``NotFound``."""

    @abc.abstractmethod
    async def delete(self, backend_id: str) -> bool:
        """Remove ``backend_id``. Deleting an absent id is not an error."""

    @abc.abstractmethod
    async def list(self) -> List[str]:
        """Snapshot of stored ids."""


class LocalStore(StorageBackend):
    def __init__(self, root: Optional[str] = None):
        if root is None:
            root = tempfile.mkdtemp(prefix="sealdrive-store-")
        os.makedirs(root, exist_ok=True)
        self.root = root

    def _blob_path(self, backend_id: str) -> Optional[str]:
        # Ids are file names under root; anything that could escape it cannot exist
        if not _SAFE_ID.fullmatch(backend_id) or backend_id.startswith("."):
            return None
        return os.path.join(self.root, backend_id)

    async def upload(self, data: bytes, *, name: Optional[str] = None) -> str:
        backend_id = LOCAL_ID_PREFIX + hashlib.sha256(data).hexdigest()[:16]
        dest = os.path.join(self.root, backend_id)
        # per-call temp name; concurrent uploads of equal bytes share dest, never tmp
        tmp = os.path.join(self.root, f".{backend_id}.{uuid.uuid4().hex}.tmp")
        async with aiofiles.open(tmp, "wb") as fh:
            await fh.write(data)
        await aiofiles.os.replace(tmp, dest)
        return backend_id

    async def download(self, backend_id: str) -> bytes:
        path = self._blob_path(backend_id)
        if path is None:
            raise NotFound(f"No such object: {backend_id}")
        try:
            async with aiofiles.open(path, "rb") as fh:
                return await fh.read()
        except FileNotFoundError:
            raise NotFound(f"No such object: {backend_id}") from None

    async def delete(self, backend_id: str) -> bool:
        path = self._blob_path(backend_id)
        if path is None:
            return True
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        return True

    async def list(self) -> List[str]:
        names = await aiofiles.os.listdir(self.root)
        return sorted(n for n in names if not n.startswith("."))


class IpfsStore(StorageBackend):
    """Client for the IPFS HTTP RPC API (``/api/v0``).

    Deletion unpins the object, which only makes it eligible for garbage
    collection; the network may still serve it.
    """

    def __init__(self, config: Optional[StorageConfig] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or StorageConfig()
        self._transport = transport

    async def _post(self, endpoint: str, *, params: Optional[Dict[str, str]] = None, files: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(endpoint, params=params, files=files)
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"IPFS {endpoint} request failed: {exc}") from exc
        if response.status_code >= 400:
            raise BackendUnavailable(f"IPFS {endpoint} returned {response.status_code}: {response.text}")
        return response

    @staticmethod
    def _json(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
        # add may stream newline-delimited objects; the last one describes the root
        lines = [ln for ln in response.text.splitlines() if ln.strip()]
        try:
            obj = json.loads(lines[-1])
        except (IndexError, ValueError) as exc:
            raise BackendUnavailable(f"IPFS {endpoint} returned a malformed response") from exc
        if not isinstance(obj, dict):
            raise BackendUnavailable(f"IPFS {endpoint} returned a malformed response")
        return obj

    async def upload(self, data: bytes, *, name: Optional[str] = None) -> str:
        response = await self._post("add", params={"pin": "true"}, files={"file": (name or "blob", data)})
        cid = self._json(response, "add").get("Hash")
        if not isinstance(cid, str) or not cid:
            raise BackendUnavailable("IPFS add response carries no Hash")
        return cid

    async def download(self, backend_id: str) -> bytes:
        response = await self._post("cat", params={"arg": backend_id})
        return response.content

    async def delete(self, backend_id: str) -> bool:
        await self._post("pin/rm", params={"arg": backend_id})
        return True

    async def list(self) -> List[str]:
        response = await self._post("pin/ls", params={"type": "recursive"})
        keys = self._json(response, "pin/ls").get("Keys") or {}
        if not isinstance(keys, dict):
            raise BackendUnavailable("IPFS pin/ls response carries no Keys")
        return sorted(keys)


class FallbackStore(StorageBackend):
    def __init__(self, primary: StorageBackend, fallback: StorageBackend):
        self.primary = primary
        self.fallback = fallback

    async def _call(self, op: str, *args, **kwargs):
        try:
            return await getattr(self.primary, op)(*args, **kwargs)
        except BackendUnavailable as exc:
            logger.warning(f"Primary backend {op} failed ({exc}); using local fallback")
        return await getattr(self.fallback, op)(*args, **kwargs)

    async def upload(self, data: bytes, *, name: Optional[str] = None) -> str:
        return await self._call("upload", data, name=name)

    async def download(self, backend_id: str) -> bytes:
        return await self._call("download", backend_id)

    async def delete(self, backend_id: str) -> bool:
        return await self._call("delete", backend_id)

    async def list(self) -> List[str]:
        return await self._call("list")


def open_storage(
    kind: str = BACKEND_IPFS,
    config: Optional[StorageConfig] = None,
    *,
    local_root: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StorageBackend:
    """Build the storage capability for ``kind``.

    Args:
        kind: ``"ipfs"`` (remote primary with local fallback) or ``"local"``.
        config: Remote connection settings; defaults apply when omitted.
        local_root: Directory for the local store (temporary when omitted).
        transport: Optional httpx transport for the remote client.

    Raises:
        ConfigurationError: for unsupported kinds, at construction time.
    """
    if kind == BACKEND_IPFS:
        return FallbackStore(IpfsStore(config, transport=transport), LocalStore(local_root))
    if kind == BACKEND_LOCAL:
        return LocalStore(local_root)
    raise ConfigurationError(
        f"Unsupported storage type: {kind!r} (expected one of {', '.join(SUPPORTED_BACKENDS)})"
    )
