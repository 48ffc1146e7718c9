import base64
import json
import uuid

import pytest

from vaultshare.crypto import AES_BLOCK_SIZE, CryptoError, ds_keygen, pke_keygen
from vaultshare.envelope import (
    EnvelopeError,
    auth_asym_dec,
    auth_asym_enc,
    auth_hybrid_dec,
    auth_hybrid_enc,
    auth_sym_dec,
    auth_sym_enc,
    hash_kdf16,
)
from vaultshare.records import FileBlock, FileKey

ENC_KEY = bytes(range(16))
MAC_KEY = bytes(range(16, 32))


@pytest.fixture(scope="module")
def pke_pair():
    return pke_keygen()


@pytest.fixture(scope="module")
def ds_pair():
    return ds_keygen()


@pytest.fixture(scope="module")
def other_ds_pair():
    return ds_keygen()


def test_hash_kdf16_length_and_determinism():
    first = hash_kdf16(ENC_KEY, b"mac")
    assert len(first) == 16
    assert first == hash_kdf16(ENC_KEY, b"mac")
    assert first != hash_kdf16(ENC_KEY, b"/Block0")


def test_hash_kdf16_bad_key():
    with pytest.raises(EnvelopeError):
        hash_kdf16(b"short", b"mac")


def test_envelope_error_is_crypto_error():
    with pytest.raises(CryptoError):
        hash_kdf16(b"", b"x")


def test_sym_round_trip_plain_data():
    data = {"alice": {"bob": str(uuid.uuid4())}}
    blob = auth_sym_enc(data, ENC_KEY, MAC_KEY)
    assert auth_sym_dec(blob, ENC_KEY, MAC_KEY) == data


def test_sym_round_trip_record():
    block = FileBlock(b"content", uuid.uuid4())
    blob = auth_sym_enc(block, ENC_KEY, MAC_KEY)
    assert FileBlock.from_dict(auth_sym_dec(blob, ENC_KEY, MAC_KEY)) == block


def test_sym_envelope_layout():
    blob = auth_sym_enc({"a": 1}, ENC_KEY, MAC_KEY)
    obj = json.loads(blob)
    assert set(obj) == {"CipherText", "Tag"}
    ciphertext = base64.b64decode(obj["CipherText"])
    assert len(ciphertext) == AES_BLOCK_SIZE + len(b'{"a":1}')
    assert len(base64.b64decode(obj["Tag"])) == 64


def test_sym_encryption_is_randomised():
    first = auth_sym_enc([1, 2], ENC_KEY, MAC_KEY)
    second = auth_sym_enc([1, 2], ENC_KEY, MAC_KEY)
    assert first != second
    assert auth_sym_dec(first, ENC_KEY, MAC_KEY) == [1, 2]
    assert auth_sym_dec(second, ENC_KEY, MAC_KEY) == [1, 2]


def test_sym_wrong_mac_key():
    blob = auth_sym_enc("x", ENC_KEY, MAC_KEY)
    with pytest.raises(EnvelopeError, match="HMAC"):
        auth_sym_dec(blob, ENC_KEY, ENC_KEY)


def test_sym_tampered_ciphertext():
    obj = json.loads(auth_sym_enc("hello", ENC_KEY, MAC_KEY))
    raw = bytearray(base64.b64decode(obj["CipherText"]))
    raw[-1] ^= 1
    obj["CipherText"] = base64.b64encode(bytes(raw)).decode()
    with pytest.raises(EnvelopeError):
        auth_sym_dec(json.dumps(obj).encode(), ENC_KEY, MAC_KEY)


def test_sym_malformed_blob():
    with pytest.raises(EnvelopeError):
        auth_sym_dec(b"not json", ENC_KEY, MAC_KEY)
    with pytest.raises(EnvelopeError):
        auth_sym_dec(b'{"CipherText": 5}', ENC_KEY, MAC_KEY)


def test_sym_unserialisable_data():
    with pytest.raises(EnvelopeError):
        auth_sym_enc(object(), ENC_KEY, MAC_KEY)


def test_asym_round_trip_file_key(pke_pair, ds_pair):
    enc_key, dec_key = pke_pair
    sign_key, verify_key = ds_pair
    key = FileKey(uuid.uuid4(), bytes(16), bytes(range(16)))
    blob = auth_asym_enc(key, enc_key, sign_key)
    assert FileKey.from_dict(auth_asym_dec(blob, dec_key, verify_key)) == key


def test_asym_wrong_verify_key(pke_pair, ds_pair, other_ds_pair):
    enc_key, dec_key = pke_pair
    blob = auth_asym_enc({"k": "v"}, enc_key, ds_pair[0])
    with pytest.raises(EnvelopeError, match="signature"):
        auth_asym_dec(blob, dec_key, other_ds_pair[1])


def test_asym_payload_too_large(pke_pair, ds_pair):
    with pytest.raises(EnvelopeError):
        auth_asym_enc("x" * 1000, pke_pair[0], ds_pair[0])


def test_hybrid_round_trip_large_payload(pke_pair, ds_pair):
    data = {"Data": "y" * 5000, "items": list(range(50))}
    blob = auth_hybrid_enc(data, pke_pair[0], ds_pair[0])
    assert auth_hybrid_dec(blob, pke_pair[1], ds_pair[1]) == data


def test_hybrid_wrong_verify_key(pke_pair, ds_pair, other_ds_pair):
    blob = auth_hybrid_enc([1, 2, 3], pke_pair[0], ds_pair[0])
    with pytest.raises(EnvelopeError):
        auth_hybrid_dec(blob, pke_pair[1], other_ds_pair[1])


def test_hybrid_wrong_dec_key(pke_pair, ds_pair):
    other_enc, other_dec = pke_keygen()
    blob = auth_hybrid_enc([1, 2, 3], pke_pair[0], ds_pair[0])
    with pytest.raises(EnvelopeError):
        auth_hybrid_dec(blob, other_dec, ds_pair[1])


def test_hybrid_tampered_signature(pke_pair, ds_pair):
    obj = json.loads(auth_hybrid_enc("z", pke_pair[0], ds_pair[0]))
    raw = bytearray(base64.b64decode(obj["Tag"]))
    raw[0] ^= 0xFF
    obj["Tag"] = base64.b64encode(bytes(raw)).decode()
    with pytest.raises(EnvelopeError):
        auth_hybrid_dec(json.dumps(obj).encode(), pke_pair[1], ds_pair[1])