"""Session key derivation and payload cipher."""

from __future__ import annotations

import string

from Crypto.Cipher import AES
from Crypto.Util.Padding import pad, unpad

from .const import SESSION_KEY_LENGTH
from .exceptions import EncryptionError


def _is_hex_key(local_key: str) -> bool:
    return len(local_key) == SESSION_KEY_LENGTH * 2 and all(
        c in string.hexdigits for c in local_key
    )


def derive_session_key(local_key: str) -> bytes:
    """
    Turn the device local key into a 16-byte AES key.

    A key of exactly 32 hex characters is hex-decoded. Anything else is
    taken as UTF-8 and truncated or zero-padded to 16 bytes.
    """
    if _is_hex_key(local_key):
        return bytes.fromhex(local_key)

    key = local_key.encode("utf-8")[:SESSION_KEY_LENGTH]
    return key.ljust(SESSION_KEY_LENGTH, b"\x00")


def encrypt_payload(session_key: bytes, device_id: str, plaintext: bytes) -> bytes:
    """
    Encrypt a command payload.

    The device id is prepended to the plaintext and the result is
    encrypted with AES-128 in ECB mode, PKCS#7 padded. ECB carries no IV
    and no integrity tag; this is what the device expects.

    Raises:
        EncryptionError: If the key is unusable or the cipher fails
    """
    try:
        cipher = AES.new(session_key, AES.MODE_ECB)
        data = device_id.encode("utf-8") + bytes(plaintext)
        return cipher.encrypt(pad(data, AES.block_size))
    except (TypeError, ValueError) as e:
        raise EncryptionError(str(e)) from e


def decrypt_payload(session_key: bytes, ciphertext: bytes) -> bytes:
    """Decrypt a payload produced by encrypt_payload (device id included)."""
    try:
        cipher = AES.new(session_key, AES.MODE_ECB)
        return unpad(cipher.decrypt(bytes(ciphertext)), AES.block_size)
    except (TypeError, ValueError) as e:
        raise EncryptionError(str(e)) from e
