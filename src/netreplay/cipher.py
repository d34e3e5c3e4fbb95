from __future__ import annotations

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import ReplayEncryptionError

AES_BLOCK_SIZE = 16
AES256_KEY_SIZE = 32


def decrypt_ecb(data: bytes, key: bytes) -> bytes:
    """AES-256/ECB decrypt `data`, keeping the zero padding in place.

    Zero padding cannot be told apart from trailing zero fields, so callers get
    the whole plaintext block and read only what they need.
    """

    key = bytes(key)
    data = bytes(data)
    if len(key) != AES256_KEY_SIZE:
        raise ReplayEncryptionError(f"expected a {AES256_KEY_SIZE}-byte AES-256 key, got {len(key)} bytes")
    if len(data) % AES_BLOCK_SIZE != 0:
        raise ReplayEncryptionError(
            f"ciphertext length {len(data)} is not a multiple of the {AES_BLOCK_SIZE}-byte block size"
        )
    try:
        decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
        return decryptor.update(data) + decryptor.finalize()
    except ValueError as exc:
        raise ReplayEncryptionError(f"cipher failure: {exc}") from exc
