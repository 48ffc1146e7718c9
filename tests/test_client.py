import pytest

from vaultshare import store
from vaultshare.client import ClientError, User, get_user, init_user

PASSWORD = "password"


@pytest.fixture(autouse=True)
def clean_stores():
    store.reset()
    yield
    store.reset()


@pytest.fixture
def alice():
    password = PASSWORD
    return init_user("alice", password)


def test_init_user_returns_session(alice):
    assert isinstance(alice, User)
    assert alice.username == "alice"


def test_init_user_publishes_public_keys():
    password = PASSWORD
    carol = init_user("carol", password)
    assert carol.username == "carol"
    assert "carol/EncKey" in store.KEYSTORE
    assert "carol/VerifyKey" in store.KEYSTORE
    assert len(store.DATASTORE) == 1


def test_empty_username_rejected():
    password = PASSWORD
    with pytest.raises(ClientError):
        init_user("", password)


def test_duplicate_user_rejected(alice):
    password = PASSWORD
    with pytest.raises(ClientError):
        init_user("alice", password)


def test_get_user_round_trip(alice):
    password = PASSWORD
    again = get_user("alice", password)
    assert again.username == "alice"
    assert again.root_key == alice.root_key


def test_get_user_wrong_password(alice):
    with pytest.raises(ClientError):
        get_user("alice", "secret")


def test_get_unknown_user():
    password = PASSWORD
    with pytest.raises(ClientError):
        get_user("nobody", password)


def test_user_record_is_encrypted(alice):
    for key in list(store.DATASTORE._entries):
        assert b"alice" not in store.DATASTORE.get(key)


def test_tampered_user_record_rejected(alice):
    (user_id,) = list(store.DATASTORE._entries)
    blob = bytearray(store.DATASTORE.get(user_id))
    blob[len(blob) // 2] ^= 0x01
    store.DATASTORE.set(user_id, bytes(blob))
    password = PASSWORD
    with pytest.raises(ClientError):
        get_user("alice", password)


def test_store_and_load(alice):
    alice.store_file("notes.txt", b"hello world")
    assert alice.load_file("notes.txt") == b"hello world"


def test_store_empty_content(alice):
    alice.store_file("empty", b"")
    assert alice.load_file("empty") == b""


def test_overwrite_replaces_content(alice):
    alice.store_file("f", b"first version")
    alice.append_to_file("f", b" plus more")
    alice.store_file("f", b"second")
    assert alice.load_file("f") == b"second"


def test_append_keeps_order(alice):
    alice.store_file("log", b"a")
    for chunk in (b"b", b"c", b"d"):
        alice.append_to_file("log", chunk)
    assert alice.load_file("log") == b"abcd"


def test_append_to_missing_file(alice):
    with pytest.raises(ClientError):
        alice.append_to_file("missing", b"data")


def test_load_missing_file(alice):
    with pytest.raises(ClientError):
        alice.load_file("missing")


def test_sessions_share_files(alice):
    password = PASSWORD
    laptop = get_user("alice", password)
    phone = get_user("alice", password)
    laptop.store_file("shared", b"from laptop")
    phone.append_to_file("shared", b" and phone")
    assert alice.load_file("shared") == b"from laptop and phone"


def test_filenames_are_per_user(alice):
    password = PASSWORD
    bob = init_user("bob", password)
    alice.store_file("doc", b"alice's")
    bob.store_file("doc", b"bob's")
    assert alice.load_file("doc") == b"alice's"
    assert bob.load_file("doc") == b"bob's"


def test_other_user_cannot_see_file(alice):
    password = PASSWORD
    bob = init_user("bob", password)
    alice.store_file("private", b"content")
    with pytest.raises(ClientError):
        bob.load_file("private")


def test_tampered_datastore_detected(alice):
    alice.store_file("f", b"content")
    alice.append_to_file("f", b" more")
    for key in list(store.DATASTORE._entries):
        store.DATASTORE.set(key, b"garbage")
    with pytest.raises(ClientError):
        alice.load_file("f")


def test_file_content_not_stored_in_clear(alice):
    alice.store_file("f", b"very distinctive content")
    for key in list(store.DATASTORE._entries):
        assert b"distinctive" not in store.DATASTORE.get(key)


def test_large_append_chain(alice):
    alice.store_file("big", b"")
    pieces = [bytes([65 + i]) * 100 for i in range(10)]
    for piece in pieces:
        alice.append_to_file("big", piece)
    assert alice.load_file("big") == b"".join(pieces)