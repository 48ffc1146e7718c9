"""Authenticated encryption envelopes around JSON-serialisable data."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from vaultshare.crypto import (
    AES_BLOCK_SIZE,
    CryptoError,
    ds_sign,
    ds_verify,
    hash_kdf,
    hmac_equal,
    hmac_eval,
    pke_dec,
    pke_enc,
    random_bytes,
    sym_dec,
    sym_enc,
)


class EnvelopeError(CryptoError):
    """Raised when data cannot be sealed or an envelope fails to open."""


def hash_kdf16(source_key: bytes, purpose: bytes) -> bytes:
    """Derive a 16-byte key from ``source_key`` for the given purpose."""
    try:
        return hash_kdf(source_key, purpose)[:16]
    except CryptoError as exc:
        raise EnvelopeError(f"error deriving key: {exc}") from exc


def _serialise(data: Any) -> bytes:
    if hasattr(data, "to_dict"):
        data = data.to_dict()
    try:
        return json.dumps(data, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EnvelopeError(f"error marshalling data: {exc}") from exc


def _deserialise(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise EnvelopeError(f"error unmarshalling data: {exc}") from exc


def _pack(**fields: bytes) -> bytes:
    encoded = {name: base64.b64encode(value).decode("ascii") for name, value in fields.items()}
    return json.dumps(encoded, separators=(",", ":")).encode("utf-8")


def _unpack(blob: bytes, *names: str) -> tuple[bytes, ...]:
    obj = _deserialise(blob)
    if not isinstance(obj, dict):
        raise EnvelopeError("envelope is not a JSON object")
    values = []
    for name in names:
        value = obj.get(name)
        if not isinstance(value, str):
            raise EnvelopeError(f"envelope field {name!r} missing or malformed")
        try:
            values.append(base64.b64decode(value, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise EnvelopeError(f"envelope field {name!r} is not base64") from exc
    return tuple(values)


def auth_sym_enc(data: Any, enc_key: bytes, mac_key: bytes) -> bytes:
    """Encrypt and MAC ``data`` with symmetric keys."""
    plaintext = _serialise(data)
    try:
        ciphertext = sym_enc(enc_key, random_bytes(AES_BLOCK_SIZE), plaintext)
        tag = hmac_eval(mac_key, ciphertext)
    except CryptoError as exc:
        raise EnvelopeError(f"error encrypting data: {exc}") from exc
    return _pack(CipherText=ciphertext, Tag=tag)


def auth_sym_dec(blob: bytes, enc_key: bytes, mac_key: bytes) -> Any:
    """Check the MAC of an envelope from :func:`auth_sym_enc` and decrypt it."""
    ciphertext, tag = _unpack(blob, "CipherText", "Tag")
    try:
        expected = hmac_eval(mac_key, ciphertext)
    except CryptoError as exc:
        raise EnvelopeError(f"error evaluating HMAC: {exc}") from exc
    if not hmac_equal(expected, tag):
        raise EnvelopeError("HMACs do not match")
    try:
        plaintext = sym_dec(enc_key, ciphertext)
    except CryptoError as exc:
        raise EnvelopeError(f"error decrypting data: {exc}") from exc
    return _deserialise(plaintext)


def auth_asym_enc(data: Any, enc_key: Any, sign_key: Any) -> bytes:
    """Encrypt ``data`` to a public key and sign the ciphertext."""
    plaintext = _serialise(data)
    try:
        ciphertext = pke_enc(enc_key, plaintext)
        signature = ds_sign(sign_key, ciphertext)
    except CryptoError as exc:
        raise EnvelopeError(f"error encrypting data: {exc}") from exc
    return _pack(CipherText=ciphertext, Tag=signature)


def auth_asym_dec(blob: bytes, dec_key: Any, verify_key: Any) -> Any:
    """Verify and decrypt an envelope from :func:`auth_asym_enc`."""
    ciphertext, signature = _unpack(blob, "CipherText", "Tag")
    try:
        ds_verify(verify_key, ciphertext, signature)
    except CryptoError as exc:
        raise EnvelopeError(f"error verifying ciphertext signature: {exc}") from exc
    try:
        plaintext = pke_dec(dec_key, ciphertext)
    except CryptoError as exc:
        raise EnvelopeError(f"error decrypting data: {exc}") from exc
    return _deserialise(plaintext)


def auth_hybrid_enc(data: Any, enc_key: Any, sign_key: Any) -> bytes:
    """Seal data of any size: fresh symmetric keys, wrapped with a public key, all signed."""
    sym_keys = random_bytes(32)
    enc_data = auth_sym_enc(data, sym_keys[:16], sym_keys[16:])
    try:
        enc_sym_keys = pke_enc(enc_key, sym_keys)
    except CryptoError as exc:
        raise EnvelopeError(f"error encrypting symmetric keys: {exc}") from exc
    inner = _pack(EncSymKeys=enc_sym_keys, EncData=enc_data)
    try:
        signature = ds_sign(sign_key, inner)
    except CryptoError as exc:
        raise EnvelopeError(f"error signing hybrid ciphertext: {exc}") from exc
    return _pack(CipherText=inner, Tag=signature)


def auth_hybrid_dec(blob: bytes, dec_key: Any, verify_key: Any) -> Any:
    """Verify and open an envelope from :func:`auth_hybrid_enc`."""
    inner, signature = _unpack(blob, "CipherText", "Tag")
    try:
        ds_verify(verify_key, inner, signature)
    except CryptoError as exc:
        raise EnvelopeError(f"error verifying ciphertext signature: {exc}") from exc
    enc_sym_keys, enc_data = _unpack(inner, "EncSymKeys", "EncData")
    try:
        sym_keys = pke_dec(dec_key, enc_sym_keys)
    except CryptoError as exc:
        raise EnvelopeError(f"error decrypting symmetric keys: {exc}") from exc
    if len(sym_keys) != 32:
        raise EnvelopeError("symmetric key bundle has the wrong length")
    return auth_sym_dec(enc_data, sym_keys[:16], sym_keys[16:])