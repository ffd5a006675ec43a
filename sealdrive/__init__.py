"""
SealDrive: password-encrypted files over content-addressable storage.

Features:

- Envelope encryption: PBKDF2-HMAC-SHA256 (100k iterations) + AES-256-CBC,
  stored as salt || iv || ciphertext.
- Logical file ids mapped onto backend ids, with pass-through for ids the
  registry has never seen.
- IPFS HTTP backend with an automatic, per-call local fallback.

The envelope has no authentication tag: a wrong password and a corrupted file
both raise DecryptionFailure. The id registry is in-memory only.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "config",
    "encryption",
    "storage",
    "resolver",
    "drive",
]

# Programmatic API: sealdrive.drive.SealDrive, or the codec functions in
# sealdrive.encryption and the FileResolver in sealdrive.resolver directly.
