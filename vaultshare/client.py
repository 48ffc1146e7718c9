"""User accounts and private, encrypted file storage on an untrusted datastore."""

from __future__ import annotations

import contextlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterator

from cryptography.hazmat.primitives import serialization

from vaultshare import store
from vaultshare.crypto import (
    AES_KEY_SIZE,
    CryptoError,
    argon2_key,
    ds_keygen,
    hash_bytes,
    pke_keygen,
    random_bytes,
)
from vaultshare.envelope import (
    EnvelopeError,
    auth_asym_dec,
    auth_asym_enc,
    auth_sym_dec,
    auth_sym_enc,
    hash_kdf16,
)
from vaultshare.records import NIL_UUID, FileBlock, FileInfo, FileKey, FileRecord


class ClientError(Exception):
    """Raised when a client operation cannot be completed."""


@contextlib.contextmanager
def _failures(context: str) -> Iterator[None]:
    """Turn low-level failures (bad data, bad crypto) into :class:`ClientError`."""
    try:
        yield
    except ClientError:
        raise
    except (CryptoError, ValueError, KeyError, TypeError, AttributeError, IndexError) as exc:
        raise ClientError(f"{context}: {exc}") from exc


def _uuid_from_hash(text: str) -> uuid.UUID:
    return uuid.UUID(bytes=hash_bytes(text.encode("utf-8"))[:16])


def _user_id(username: str) -> uuid.UUID:
    return _uuid_from_hash("User/" + username)


def _public_enc_key(username: str) -> Any:
    key = store.KEYSTORE.get(f"{username}/EncKey")
    if key is None:
        raise ClientError(f"error retrieving encryption key of {username!r}")
    return key


def _public_verify_key(username: str) -> Any:
    key = store.KEYSTORE.get(f"{username}/VerifyKey")
    if key is None:
        raise ClientError(f"error retrieving verification key of {username!r}")
    return key


def _block_keys(file_enc_key: bytes, file_mac_key: bytes, index: int) -> tuple[bytes, bytes]:
    purpose = f"/Block{index}".encode("utf-8")
    return hash_kdf16(file_enc_key, purpose), hash_kdf16(file_mac_key, purpose)


def _invitation_table_keys(file_enc_key: bytes, file_mac_key: bytes) -> tuple[bytes, bytes]:
    purpose = b"InvitationTable"
    return hash_kdf16(file_enc_key, purpose), hash_kdf16(file_mac_key, purpose)


def _iter_blocks(
    file_enc_key: bytes, file_mac_key: bytes, record: FileRecord
) -> Iterator[tuple[uuid.UUID, int, FileBlock]]:
    """Yield ``(block_id, index, block)`` from the last block back to the first."""
    index, block_id = record.num_blocks - 1, record.last_block_id
    while block_id != NIL_UUID:
        blob = store.DATASTORE.get(block_id)
        if blob is None:
            raise ClientError(f"error retrieving FileBlock {index} at {block_id}")
        enc_key, mac_key = _block_keys(file_enc_key, file_mac_key, index)
        try:
            block = FileBlock.from_dict(auth_sym_dec(blob, enc_key, mac_key))
        except (EnvelopeError, ValueError) as exc:
            raise ClientError(f"error decrypting FileBlock: {exc}") from exc
        yield block_id, index, block
        index -= 1
        block_id = block.prev_block_id


def _private_key_to_text(key: Any) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def _private_key_from_text(text: Any) -> Any:
    if not isinstance(text, str):
        raise ValueError("expected a PEM string")
    return serialization.load_pem_private_key(text.encode("ascii"), password=None)


@dataclass
class User:
    """A logged-in user session holding the user's private keys."""

    username: str
    dec_key: Any = field(repr=False)
    sign_key: Any = field(repr=False)
    root_key: bytes = field(repr=False)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "Username": self.username,
            "DecKey": _private_key_to_text(self.dec_key),
            "SignKey": _private_key_to_text(self.sign_key),
        }

    @classmethod
    def _from_dict(cls, data: Any, root_key: bytes) -> User:
        if not isinstance(data, dict):
            raise ValueError("user record must be a JSON object")
        username = data["Username"]
        if not isinstance(username, str):
            raise ValueError("username must be a string")
        return cls(
            username=username,
            dec_key=_private_key_from_text(data["DecKey"]),
            sign_key=_private_key_from_text(data["SignKey"]),
            root_key=root_key,
        )

    # -- per-file addressing -------------------------------------------------

    def _file_info_id(self, filename: str) -> uuid.UUID:
        return _uuid_from_hash("FileInfo/" + self.username + filename)

    def _file_info_keys(self, filename: str) -> tuple[bytes, bytes]:
        return (
            hash_kdf16(self.root_key, (filename + "/encKey").encode("utf-8")),
            hash_kdf16(self.root_key, (filename + "/macKey").encode("utf-8")),
        )

    def _file_exists(self, filename: str) -> bool:
        return self._file_info_id(filename) in store.DATASTORE

    def _save_file_info(self, filename: str, info: FileInfo) -> bytes:
        enc_key, mac_key = self._file_info_keys(filename)
        return auth_sym_enc(info, enc_key, mac_key)

    # -- file structure ------------------------------------------------------

    def _create_file(self, filename: str) -> tuple[FileInfo, FileKey, FileRecord]:
        """Create and store the records of a new, empty file (assumed absent)."""
        file_info_id = self._file_info_id(filename)
        info = FileInfo(
            self_id=file_info_id,
            owner=self.username,
            inviter=self.username,
            access_group=self.username,
            file_id=uuid.uuid4(),
            file_key_id=uuid.uuid4(),
        )
        enc_info = self._save_file_info(filename, info)

        file_key = FileKey(
            self_id=info.file_key_id,
            enc_key=random_bytes(AES_KEY_SIZE),
            mac_key=random_bytes(AES_KEY_SIZE),
        )
        enc_file_key = auth_asym_enc(file_key, _public_enc_key(self.username), self.sign_key)

        record = FileRecord(num_blocks=0, last_block_id=NIL_UUID, invitation_table_id=uuid.uuid4())
        enc_record = auth_sym_enc(record, file_key.enc_key, file_key.mac_key)

        table_enc_key, table_mac_key = _invitation_table_keys(file_key.enc_key, file_key.mac_key)
        enc_table = auth_sym_enc({}, table_enc_key, table_mac_key)

        store.DATASTORE.set(info.self_id, enc_info)
        store.DATASTORE.set(file_key.self_id, enc_file_key)
        store.DATASTORE.set(info.file_id, enc_record)
        store.DATASTORE.set(record.invitation_table_id, enc_table)
        return info, file_key, record

    def _open_file(self, filename: str) -> tuple[FileInfo, FileKey, FileRecord]:
        """Load and authenticate the FileInfo, FileKey and FileRecord of a file."""
        enc_info = store.DATASTORE.get(self._file_info_id(filename))
        if enc_info is None:
            raise ClientError(f"file {filename} does not exist")
        enc_key, mac_key = self._file_info_keys(filename)
        try:
            info = FileInfo.from_dict(auth_sym_dec(enc_info, enc_key, mac_key))
        except (EnvelopeError, ValueError) as exc:
            raise ClientError(f"error decrypting FileInfo: {exc}") from exc

        enc_file_key = store.DATASTORE.get(info.file_key_id)
        if enc_file_key is None:
            raise ClientError("error retrieving file key")
        inviter_verify_key = _public_verify_key(info.inviter)
        try:
            file_key = FileKey.from_dict(
                auth_asym_dec(enc_file_key, self.dec_key, inviter_verify_key)
            )
        except (EnvelopeError, ValueError):
            # Not signed by the inviter: after a revocation the owner re-signs it.
            owner_verify_key = _public_verify_key(info.owner)
            try:
                file_key = FileKey.from_dict(
                    auth_asym_dec(enc_file_key, self.dec_key, owner_verify_key)
                )
            except (EnvelopeError, ValueError) as exc:
                raise ClientError(f"error decrypting FileKey: {exc}") from exc
            if file_key.self_id != info.file_key_id:
                raise ClientError(
                    "error decrypting FileKey: FileKey id does not match FileInfo"
                )

        enc_record = store.DATASTORE.get(info.file_id)
        if enc_record is None:
            raise ClientError("error retrieving file")
        try:
            record = FileRecord.from_dict(
                auth_sym_dec(enc_record, file_key.enc_key, file_key.mac_key)
            )
        except (EnvelopeError, ValueError) as exc:
            raise ClientError(f"error decrypting File: {exc}") from exc
        return info, file_key, record

    def _add_block(
        self, info: FileInfo, file_key: FileKey, record: FileRecord, content: bytes, index: int,
        prev_block_id: uuid.UUID,
    ) -> None:
        block = FileBlock(data=bytes(content), prev_block_id=prev_block_id)
        block_enc_key, block_mac_key = _block_keys(file_key.enc_key, file_key.mac_key, index)
        enc_block = auth_sym_enc(block, block_enc_key, block_mac_key)
        block_id = uuid.uuid4()

        record.num_blocks = index + 1
        record.last_block_id = block_id
        enc_record = auth_sym_enc(record, file_key.enc_key, file_key.mac_key)

        store.DATASTORE.set(block_id, enc_block)
        store.DATASTORE.set(info.file_id, enc_record)

    # -- public operations ---------------------------------------------------

    def store_file(self, filename: str, content: bytes) -> None:
        """Create ``filename`` or replace its whole content."""
        with _failures("error storing file"):
            if self._file_exists(filename):
                info, file_key, record = self._open_file(filename)
                self._add_block(info, file_key, record, content, 0, NIL_UUID)
                return
            info, file_key, record = self._create_file(filename)
            try:
                self._add_block(info, file_key, record, content, 0, NIL_UUID)
            except BaseException:
                for key in (info.self_id, file_key.self_id, info.file_id,
                            record.invitation_table_id):
                    store.DATASTORE.delete(key)
                raise

    def append_to_file(self, filename: str, content: bytes) -> None:
        """Add ``content`` to the end of an existing file."""
        with _failures("error appending to file"):
            info, file_key, record = self._open_file(filename)
            self._add_block(
                info, file_key, record, content, record.num_blocks, record.last_block_id
            )

    def load_file(self, filename: str) -> bytes:
        """Return the whole content of ``filename``."""
        with _failures("error retrieving File"):
            _, file_key, record = self._open_file(filename)
            chunks = [
                block.data
                for _, _, block in _iter_blocks(file_key.enc_key, file_key.mac_key, record)
            ]
            return b"".join(reversed(chunks))


def _root_key(password: str, user_id: uuid.UUID) -> bytes:
    return argon2_key(password.encode("utf-8"), str(user_id).encode("ascii"), 16)


def init_user(username: str, password: str) -> User:
    """Create a new user account and return its session."""
    if username == "":
        raise ClientError("username cannot be empty")
    with _failures("error creating user"):
        user_id = _user_id(username)
        if user_id in store.DATASTORE:
            raise ClientError(f"user already exists at uuid {user_id}")
        enc_key, dec_key = pke_keygen()
        sign_key, verify_key = ds_keygen()
        root_key = _root_key(password, user_id)
        user = User(username=username, dec_key=dec_key, sign_key=sign_key, root_key=root_key)
        enc_user = auth_sym_enc(user._to_dict(), root_key, hash_kdf16(root_key, b"mac"))
        store.KEYSTORE.set(f"{username}/EncKey", enc_key)
        store.KEYSTORE.set(f"{username}/VerifyKey", verify_key)
        store.DATASTORE.set(user_id, enc_user)
        return user


def get_user(username: str, password: str) -> User:
    """Log in as an existing user; a wrong password or tampered record raises."""
    with _failures("error retrieving user"):
        user_id = _user_id(username)
        enc_user = store.DATASTORE.get(user_id)
        if enc_user is None:
            raise ClientError(f"user {username} not found")
        root_key = _root_key(password, user_id)
        data = auth_sym_dec(enc_user, root_key, hash_kdf16(root_key, b"mac"))
        return User._from_dict(data, root_key)