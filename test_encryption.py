from __future__ import annotations

import hashlib
import os
import tempfile
import unittest
from pathlib import Path

from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import pad

from sealdrive.constants import HEADER_SIZE, PBKDF2_ITERATIONS, SALT_SIZE
from sealdrive.encryption import (
    ciphertext_length,
    decrypt,
    decrypt_file,
    default_decrypted_path,
    derive_key,
    encrypt,
    encrypt_file,
)
from sealdrive.errors import DecryptionFailure, MalformedInput, NotFound


SAMPLE_54 = b"The quick brown fox jumps over the lazy dog, 54 bytes."


def _assert_not_recovered(test: unittest.TestCase, envelope: bytes, password: str, plaintext: bytes):
    # Without an auth tag a wrong key passes padding roughly 1 time in 256
    try:
        out = decrypt(envelope, password)
    except DecryptionFailure:
        return
    test.assertNotEqual(out, plaintext)


class KeyDerivationTests(unittest.TestCase):
    def test_generates_salt(self):
        key, salt = derive_key("pw1")
        self.assertEqual(len(key), 32)
        self.assertEqual(len(salt), SALT_SIZE)

    def test_determinism_and_password_sensitivity(self):
        salt = bytes(range(16))
        k1, s1 = derive_key("pw1", salt)
        k2, _ = derive_key("pw1", salt)
        self.assertEqual(k1, k2)
        self.assertEqual(s1, salt)
        for other in ("pw2", "PW1", "pw1 ", "", "päss"):
            self.assertNotEqual(derive_key(other, salt)[0], k1)

    def test_matches_pbkdf2_sha256(self):
        salt = b"\x01" * 16
        expected = hashlib.pbkdf2_hmac("sha256", "päss".encode("utf-8"), salt, PBKDF2_ITERATIONS, 32)
        self.assertEqual(derive_key("päss", salt)[0], expected)

    def test_rejects_bad_salt_length(self):
        with self.assertRaises(ValueError):
            derive_key("pw1", b"short")


class EnvelopeTests(unittest.TestCase):
    def test_roundtrip_sizes(self):
        for n in (0, 1, 15, 16, 17, 54, 1000):
            data = os.urandom(n)
            env = encrypt(data, "pw1")
            self.assertEqual(len(env), HEADER_SIZE + ciphertext_length(n))
            self.assertEqual(decrypt(env, "pw1"), data)

    def test_ciphertext_length_rule(self):
        self.assertEqual(ciphertext_length(0), 16)
        self.assertEqual(ciphertext_length(15), 16)
        self.assertEqual(ciphertext_length(16), 32)
        self.assertEqual(ciphertext_length(54), 64)

    def test_fresh_salt_and_iv_per_call(self):
        a = encrypt(b"same", "pw1")
        b = encrypt(b"same", "pw1")
        self.assertNotEqual(a[:16], b[:16])
        self.assertNotEqual(a[16:32], b[16:32])
        self.assertNotEqual(a, b)

    def test_layout_is_salt_iv_ciphertext(self):
        salt = b"S" * 16
        iv = b"I" * 16
        key = hashlib.pbkdf2_hmac("sha256", b"pw1", salt, PBKDF2_ITERATIONS, 32)
        ct = AES.new(key, AES.MODE_CBC, iv=iv).encrypt(pad(SAMPLE_54, 16))
        self.assertEqual(decrypt(salt + iv + ct, "pw1"), SAMPLE_54)

    def test_wrong_password_scenario(self):
        self.assertEqual(len(SAMPLE_54), 54)
        env = encrypt(SAMPLE_54, "pw1")
        self.assertEqual(len(env), 96)
        self.assertEqual(decrypt(env, "pw1"), SAMPLE_54)
        with self.assertRaises(DecryptionFailure):
            decrypt(env, "pw2")

    def test_wrong_passwords_never_recover_plaintext(self):
        pairs = [("alpha", "beta"), ("correct horse", "correct horse "), ("x", "y"), ("", "nonempty")]
        for right, wrong in pairs:
            env = encrypt(SAMPLE_54, right)
            _assert_not_recovered(self, env, wrong, SAMPLE_54)

    def test_tampered_ciphertext(self):
        env = bytearray(encrypt(SAMPLE_54, "pw1"))
        env[-1] ^= 0xFF
        _assert_not_recovered(self, bytes(env), "pw1", SAMPLE_54)

    def test_short_envelope_is_malformed(self):
        for n in (0, 1, 31):
            with self.assertRaises(MalformedInput):
                decrypt(b"\x00" * n, "pw1")

    def test_header_only_and_misaligned(self):
        with self.assertRaises(DecryptionFailure):
            decrypt(b"\x00" * 32, "pw1")
        env = encrypt(SAMPLE_54, "pw1")
        with self.assertRaises(DecryptionFailure):
            decrypt(env[:-1], "pw1")


class FileWrapperTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.src = self.root / "note.txt"
        self.src.write_bytes(SAMPLE_54)

    async def test_default_paths_roundtrip(self):
        enc = await encrypt_file(str(self.src), "pw1")
        self.assertEqual(enc, str(self.src) + ".enc")
        self.assertEqual(os.path.getsize(enc), 96)
        dec = await decrypt_file(enc, "pw1")
        self.assertEqual(dec, str(self.src) + ".dec")
        self.assertEqual(Path(dec).read_bytes(), SAMPLE_54)

    async def test_explicit_output_creates_dirs(self):
        out = self.root / "nested" / "deeper" / "blob.bin"
        enc = await encrypt_file(str(self.src), "pw1", output_path=str(out))
        self.assertEqual(enc, str(out))
        back = self.root / "plain" / "note.txt"
        await decrypt_file(enc, "pw1", output_path=str(back))
        self.assertEqual(back.read_bytes(), SAMPLE_54)

    async def test_missing_source(self):
        with self.assertRaises(NotFound):
            await encrypt_file(str(self.root / "absent.txt"), "pw1")
        with self.assertRaises(NotFound):
            await decrypt_file(str(self.root / "absent.enc"), "pw1")

    async def test_decrypt_errors_name_the_file(self):
        bad = self.root / "short.enc"
        bad.write_bytes(b"\x00" * 10)
        with self.assertRaises(MalformedInput) as ctx:
            await decrypt_file(str(bad), "pw1")
        self.assertIn(str(bad), str(ctx.exception))

        misaligned = self.root / "misaligned.enc"
        misaligned.write_bytes(b"\x00" * 40)
        with self.assertRaises(DecryptionFailure) as ctx:
            await decrypt_file(str(misaligned), "pw1")
        self.assertIn(str(misaligned), str(ctx.exception))
        self.assertFalse((self.root / "misaligned.dec").exists())

    def test_default_decrypted_path(self):
        self.assertEqual(default_decrypted_path("a/b.txt.enc"), "a/b.txt.dec")
        self.assertEqual(default_decrypted_path("a/b.bin"), "a/b.bin.dec")


if __name__ == "__main__":
    unittest.main()
