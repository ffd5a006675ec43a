# Envelope layout: salt(16) || iv(16) || ciphertext
SALT_SIZE = 16
IV_SIZE = 16
HEADER_SIZE = SALT_SIZE + IV_SIZE
KEY_SIZE = 32  # AES-256
BLOCK_SIZE = 16

# Fixed PBKDF2-HMAC-SHA256 work factor. Changing it breaks every existing envelope.
PBKDF2_ITERATIONS = 100_000

ENCRYPTED_SUFFIX = ".enc"
DECRYPTED_SUFFIX = ".dec"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Storage backends
BACKEND_IPFS = "ipfs"
BACKEND_LOCAL = "local"
SUPPORTED_BACKENDS = (BACKEND_IPFS, BACKEND_LOCAL)

DEFAULT_IPFS_HOST = "ipfs.infura.io"
DEFAULT_IPFS_PORT = 5001
DEFAULT_IPFS_PROTOCOL = "https"
DEFAULT_TIMEOUT = 30.0

LOCAL_ID_PREFIX = "local-"
