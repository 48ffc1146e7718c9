"""Cryptographic primitives used by the file-sharing client."""

from __future__ import annotations

import hashlib
import hmac
import os

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

try:
    from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
except ImportError:  # older releases of the library
    Argon2id = None

AES_BLOCK_SIZE = 16
AES_KEY_SIZE = 16
RSA_KEY_BITS = 2048

_ARGON2_ITERATIONS = 1
_ARGON2_LANES = 4
_ARGON2_MEMORY_KIB = 64 * 1024


class CryptoError(Exception):
    """Raised when a cryptographic operation fails or gets bad input."""


def hash_bytes(data: bytes) -> bytes:
    """Return the SHA-512 digest of ``data``."""
    return hashlib.sha512(data).digest()


def argon2_key(password: bytes, salt: bytes, key_len: int) -> bytes:
    """Derive ``key_len`` bytes from a password with a slow, memory-hard KDF."""
    if key_len <= 0:
        raise CryptoError("key length must be positive")
    if Argon2id is not None and len(salt) >= 8:
        try:
            kdf = Argon2id(
                salt=salt,
                length=key_len,
                iterations=_ARGON2_ITERATIONS,
                lanes=_ARGON2_LANES,
                memory_cost=_ARGON2_MEMORY_KIB,
            )
            return kdf.derive(password)
        except UnsupportedAlgorithm:
            pass
    return hashlib.scrypt(password, salt=salt, n=2**14, r=8, p=1, dklen=key_len)


def random_bytes(n: int) -> bytes:
    """Return ``n`` cryptographically secure random bytes."""
    return os.urandom(n)


def _aes_ctr(key: bytes, iv: bytes) -> Cipher:
    if len(key) != AES_KEY_SIZE:
        raise CryptoError(f"symmetric key must be {AES_KEY_SIZE} bytes")
    if len(iv) != AES_BLOCK_SIZE:
        raise CryptoError(f"IV must be {AES_BLOCK_SIZE} bytes")
    return Cipher(algorithms.AES(key), modes.CTR(iv))


def sym_enc(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """Encrypt with AES-CTR; the IV is prepended to the ciphertext."""
    encryptor = _aes_ctr(key, iv).encryptor()
    return iv + encryptor.update(plaintext) + encryptor.finalize()


def sym_dec(key: bytes, ciphertext: bytes) -> bytes:
    """Decrypt a ciphertext produced by :func:`sym_enc`."""
    if len(ciphertext) < AES_BLOCK_SIZE:
        raise CryptoError("ciphertext too short")
    iv, body = ciphertext[:AES_BLOCK_SIZE], ciphertext[AES_BLOCK_SIZE:]
    decryptor = _aes_ctr(key, iv).decryptor()
    return decryptor.update(body) + decryptor.finalize()


def hmac_eval(key: bytes, message: bytes) -> bytes:
    """Return the HMAC-SHA512 tag of ``message`` under a 16-byte key."""
    if len(key) != AES_KEY_SIZE:
        raise CryptoError(f"HMAC key must be {AES_KEY_SIZE} bytes")
    return hmac.new(key, message, hashlib.sha512).digest()


def hmac_equal(a: bytes, b: bytes) -> bool:
    """Compare two tags in constant time."""
    return hmac.compare_digest(a, b)


def hash_kdf(source_key: bytes, purpose: bytes) -> bytes:
    """Derive a 64-byte key from a 16-byte source key and a purpose string."""
    if len(source_key) != AES_KEY_SIZE:
        raise CryptoError(f"source key must be {AES_KEY_SIZE} bytes")
    return hmac.new(source_key, purpose, hashlib.sha512).digest()


_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA512()),
    algorithm=hashes.SHA512(),
    label=None,
)


def pke_keygen() -> tuple[rsa.RSAPublicKey, rsa.RSAPrivateKey]:
    """Generate an RSA key pair for encryption: ``(enc_key, dec_key)``."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_BITS)
    return private_key.public_key(), private_key


def pke_enc(enc_key: rsa.RSAPublicKey, plaintext: bytes) -> bytes:
    """Encrypt a short message with RSA-OAEP."""
    try:
        return enc_key.encrypt(plaintext, _OAEP)
    except (ValueError, TypeError, AttributeError) as exc:
        raise CryptoError(f"public-key encryption failed: {exc}") from exc


def pke_dec(dec_key: rsa.RSAPrivateKey, ciphertext: bytes) -> bytes:
    """Decrypt an RSA-OAEP ciphertext."""
    try:
        return dec_key.decrypt(ciphertext, _OAEP)
    except (ValueError, TypeError, AttributeError) as exc:
        raise CryptoError(f"public-key decryption failed: {exc}") from exc


def ds_keygen() -> tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generate an RSA key pair for signatures: ``(sign_key, verify_key)``."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_BITS)
    return private_key, private_key.public_key()


def ds_sign(sign_key: rsa.RSAPrivateKey, message: bytes) -> bytes:
    """Sign ``message`` with RSA PKCS#1 v1.5 over SHA-512."""
    try:
        return sign_key.sign(message, padding.PKCS1v15(), hashes.SHA512())
    except (ValueError, TypeError, AttributeError) as exc:
        raise CryptoError(f"signing failed: {exc}") from exc


def ds_verify(verify_key: rsa.RSAPublicKey, message: bytes, signature: bytes) -> None:
    """Check a signature; raise :class:`CryptoError` if it does not match."""
    try:
        verify_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA512())
    except InvalidSignature as exc:
        raise CryptoError("signature verification failed") from exc
    except (ValueError, TypeError, AttributeError) as exc:
        raise CryptoError(f"signature verification failed: {exc}") from exc