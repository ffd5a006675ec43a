from __future__ import annotations

import sys
import asyncio
import argparse
import logging
import getpass as _getpass

from typing import List, Optional

from sealdrive.config import StorageConfig, default_backend, default_store_dir
from sealdrive.constants import SUPPORTED_BACKENDS
from sealdrive.drive import SealDrive
from sealdrive.encryption import decrypt_file, encrypt_file
from sealdrive.errors import SealDriveError


def _password(value: Optional[str]) -> str:
    if value is not None:
        return value
    return _getpass.getpass("Password: ")


def cmd_encrypt(path: str, *, password: str, output: Optional[str] = None) -> bool:
    """Encrypt a local file into an envelope.

    Args:
        path: Plaintext file.
        password: Encryption password.
        output: Destination path (default: ``<path>.enc``).
    """
    out = asyncio.run(encrypt_file(path, password, output_path=output))
    print(f"Encrypted {path} -> {out}")
    return True


def cmd_decrypt(path: str, *, password: str, output: Optional[str] = None) -> bool:
    """Decrypt an envelope file.

    Args:
        path: Envelope file.
        password: Password used at encryption time.
        output: Destination path (default: ``.enc`` replaced by ``.dec``).
    """
    out = asyncio.run(decrypt_file(path, password, output_path=output))
    print(f"Decrypted {path} -> {out}")
    return True


def cmd_upload(drive: SealDrive, path: str, *, file_id: Optional[str] = None, content_type: Optional[str] = None, encrypted: bool = False) -> bool:
    """Upload a file; prints ``<logical id>\\t<backend id>``.

    The logical id only lives as long as this process; keep the backend id to
    fetch the file again later.
    """
    fid = asyncio.run(drive.upload_file(path, file_id=file_id, content_type=content_type, encrypted=encrypted))
    record = drive.resolver.get(fid)
    print(f"{fid}\t{record.backend_id if record else fid}")
    return True


def cmd_download(drive: SealDrive, file_id: str, destination: str) -> bool:
    out = asyncio.run(drive.download_file(file_id, destination))
    print(f"Downloaded {file_id} -> {out}")
    return True


def cmd_delete(drive: SealDrive, file_id: str) -> bool:
    ok = asyncio.run(drive.delete_file(file_id))
    print("Deleted" if ok else "Not deleted")
    return ok


def cmd_list(drive: SealDrive) -> bool:
    # The registry starts empty in every process, so list what the backend holds
    for backend_id in asyncio.run(drive.storage.list()):
        print(backend_id)
    return True


def _build_drive(args: argparse.Namespace) -> SealDrive:
    config = StorageConfig.from_env()
    config = StorageConfig(
        host=args.host or config.host,
        port=args.port or config.port,
        protocol=args.protocol or config.protocol,
        timeout=config.timeout,
    )
    return SealDrive(args.backend, config, local_root=args.store_dir)


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="sealdrive",
        description="Password-encrypted files over content-addressable storage",
        epilog=(
            "Envelopes carry no authentication tag: a wrong password and a corrupted "
            "file are reported the same way."
        ),
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    sub = ap.add_subparsers(dest="cmd", required=True)

    storage_opts = argparse.ArgumentParser(add_help=False)
    storage_opts.add_argument(
        "--backend",
        choices=list(SUPPORTED_BACKENDS),
        default=default_backend(),
        help="Primary storage (ipfs falls back to the local store on errors). Default: $SEALDRIVE_BACKEND or ipfs",
    )
    storage_opts.add_argument("--store-dir", default=default_store_dir(), help="Local store directory (default: $SEALDRIVE_STORE_DIR or a temp dir)")
    storage_opts.add_argument("--host", help="IPFS API host")
    storage_opts.add_argument("--port", type=int, help="IPFS API port")
    storage_opts.add_argument("--protocol", choices=["http", "https"], help="IPFS API protocol")

    ap_enc = sub.add_parser("encrypt", help="Encrypt a file")
    ap_enc.add_argument("path", help="Plaintext file")
    ap_enc.add_argument("--output", help="Output path (default: <path>.enc)")
    ap_enc.add_argument("--password", help="Encryption password")

    ap_dec = sub.add_parser("decrypt", help="Decrypt a file")
    ap_dec.add_argument("path", help="Encrypted file")
    ap_dec.add_argument("--output", help="Output path (default: .enc -> .dec)")
    ap_dec.add_argument("--password", help="Decryption password")

    ap_up = sub.add_parser("upload", parents=[storage_opts], help="Upload a file")
    ap_up.add_argument("path", help="File to upload")
    ap_up.add_argument("--id", dest="file_id", help="Logical file id (default: random UUID)")
    ap_up.add_argument("--content-type", help="MIME type to record")
    ap_up.add_argument("--encrypted", action="store_true", help="Mark the file as an encrypted envelope")

    ap_down = sub.add_parser("download", parents=[storage_opts], help="Download a file by id")
    ap_down.add_argument("file_id", help="Logical or backend id")
    ap_down.add_argument("destination", help="Output path")

    ap_del = sub.add_parser("delete", parents=[storage_opts], help="Delete a file by id")
    ap_del.add_argument("file_id", help="Logical or backend id")

    sub.add_parser("list", parents=[storage_opts], help="List stored backend ids")

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        if args.cmd == "encrypt":
            ok = cmd_encrypt(args.path, password=_password(args.password), output=args.output)
        elif args.cmd == "decrypt":
            ok = cmd_decrypt(args.path, password=_password(args.password), output=args.output)
        else:
            drive = _build_drive(args)
            if args.cmd == "upload":
                ok = cmd_upload(drive, args.path, file_id=args.file_id, content_type=args.content_type, encrypted=args.encrypted)
            elif args.cmd == "download":
                ok = cmd_download(drive, args.file_id, args.destination)
            elif args.cmd == "delete":
                ok = cmd_delete(drive, args.file_id)
            elif args.cmd == "list":
                ok = cmd_list(drive)
            else:
                raise RuntimeError("Unknown command")
    except (SealDriveError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
