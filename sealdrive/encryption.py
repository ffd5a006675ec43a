"""Password-based envelope encryption.

An envelope is ``salt || iv || ciphertext``: 16 bytes of PBKDF2 salt, the
16-byte AES-CBC IV, then AES-256-CBC output with PKCS#7 padding. The layout
is positional with no magic, version, or authentication tag, so a wrong
password and a corrupted ciphertext both surface as ``DecryptionFailure``.
Adding a tag would change the wire format and break existing envelopes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional, Tuple

import aiofiles
import aiofiles.os
from Cryptodome.Cipher import AES
from Cryptodome.Hash import SHA256
from Cryptodome.Protocol.KDF import PBKDF2
from Cryptodome.Util.Padding import pad, unpad

from .constants import (
    BLOCK_SIZE,
    DECRYPTED_SUFFIX,
    ENCRYPTED_SUFFIX,
    HEADER_SIZE,
    IV_SIZE,
    KEY_SIZE,
    PBKDF2_ITERATIONS,
    SALT_SIZE,
)
from .errors import DecryptionFailure, MalformedInput, NotFound


logger = logging.getLogger(__name__)


def derive_key(password: str, salt: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Derive a 32-byte AES key from ``password``.

    Args:
        password: Caller-supplied password (encoded as UTF-8).
        salt: 16-byte salt. A fresh random salt is generated when omitted.

    Returns:
        (key, salt)
    """
    if salt is None:
        salt = os.urandom(SALT_SIZE)
    elif len(salt) != SALT_SIZE:
        raise ValueError(f"Salt must be {SALT_SIZE} bytes")
    key = PBKDF2(
        password.encode("utf-8"),
        salt,
        dkLen=KEY_SIZE,
        count=PBKDF2_ITERATIONS,
        hmac_hash_module=SHA256,
    )
    return key, salt


def ciphertext_length(plaintext_len: int) -> int:
    # PKCS#7 always adds at least one byte, so aligned input grows by a full block.
    return (plaintext_len // BLOCK_SIZE + 1) * BLOCK_SIZE


def encrypt(plaintext: bytes, password: str) -> bytes:
    key, salt = derive_key(password)
    iv = os.urandom(IV_SIZE)
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    return salt + iv + cipher.encrypt(pad(plaintext, BLOCK_SIZE))


def decrypt(envelope: bytes, password: str) -> bytes:
    if len(envelope) < HEADER_SIZE:
        raise MalformedInput(
            f"Envelope is {len(envelope)} bytes; at least {HEADER_SIZE} are required"
        )
    salt = envelope[:SALT_SIZE]
    iv = envelope[SALT_SIZE:HEADER_SIZE]
    ciphertext = envelope[HEADER_SIZE:]
    if not ciphertext:
        raise DecryptionFailure("Envelope carries no ciphertext")
    key, _ = derive_key(password, salt)
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    try:
        return unpad(cipher.decrypt(ciphertext), BLOCK_SIZE)
    except ValueError as exc:
        # Misaligned length or bad padding: wrong password and tampering look the same
        raise DecryptionFailure(
            "Decryption failed, possibly due to an incorrect password or corrupted data"
        ) from exc


# -------- File wrappers --------

async def _read_source(path: str) -> bytes:
    try:
        async with aiofiles.open(path, "rb") as fh:
            return await fh.read()
    except FileNotFoundError as exc:
        raise NotFound(f"File not found: {path}") from exc


async def _write_output(path: str, data: bytes) -> None:
    parent = os.path.dirname(path)
    if parent:
        await aiofiles.os.makedirs(parent, exist_ok=True)
    async with aiofiles.open(path, "wb") as fh:
        await fh.write(data)


def default_decrypted_path(path: str) -> str:
    if path.endswith(ENCRYPTED_SUFFIX):
        return path[: -len(ENCRYPTED_SUFFIX)] + DECRYPTED_SUFFIX
    return path + DECRYPTED_SUFFIX


async def encrypt_file(path: str, password: str, *, output_path: Optional[str] = None) -> str:
    """Encrypt the file at ``path`` into an envelope file.

    Args:
        path: Plaintext source.
        password: Encryption password.
        output_path: Destination; defaults to ``path + ".enc"``.

    Returns:
        The path written.
    """
    out = output_path or path + ENCRYPTED_SUFFIX
    plaintext = await _read_source(path)
    # PBKDF2 is deliberately slow; keep it off the event loop
    envelope = await asyncio.to_thread(encrypt, plaintext, password)
    await _write_output(out, envelope)
    logger.debug(f"Encrypted {path} -> {out} ({len(envelope)} bytes)")
    return out


async def decrypt_file(path: str, password: str, *, output_path: Optional[str] = None) -> str:
    """Decrypt an envelope file.

    Args:
        path: Envelope source.
        password: Password used at encryption time.
        output_path: Destination; defaults to ``path`` with ``.enc`` swapped
            for ``.dec`` (or ``.dec`` appended).

    Returns:
        The path written.
    """
    out = output_path or default_decrypted_path(path)
    envelope = await _read_source(path)
    try:
        plaintext = await asyncio.to_thread(decrypt, envelope, password)
    except MalformedInput as exc:
        raise MalformedInput(f"{path}: {exc}") from exc
    except DecryptionFailure as exc:
        raise DecryptionFailure(f"{path}: {exc}") from exc
    await _write_output(out, plaintext)
    logger.debug(f"Decrypted {path} -> {out} ({len(plaintext)} bytes)")
    return out


__all__ = [
    "derive_key",
    "ciphertext_length",
    "encrypt",
    "decrypt",
    "encrypt_file",
    "decrypt_file",
    "default_decrypted_path",
]
