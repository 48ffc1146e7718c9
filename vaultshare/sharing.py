"""Sharing files between users: invitations, acceptance and revocation."""

from __future__ import annotations

import uuid
from typing import Any

from vaultshare import store
from vaultshare.client import (
    ClientError,
    User,
    _failures,
    _invitation_table_keys,
    _iter_blocks,
    _public_enc_key,
    _public_verify_key,
)
from vaultshare.crypto import AES_KEY_SIZE, random_bytes
from vaultshare.envelope import (
    EnvelopeError,
    auth_asym_dec,
    auth_asym_enc,
    auth_hybrid_dec,
    auth_hybrid_enc,
    auth_sym_dec,
    auth_sym_enc,
)
from vaultshare.records import FileInfo, FileKey, FileRecord

# Access group (a user the owner shared with directly) -> member name -> FileKey id.
InvitationTable = dict[str, dict[str, uuid.UUID]]


def _decode_table(data: Any) -> InvitationTable:
    if not isinstance(data, dict):
        raise ValueError("invitation table must be a JSON object")
    table: InvitationTable = {}
    for group, members in data.items():
        if not isinstance(members, dict):
            raise ValueError("invitation table group must be a JSON object")
        table[group] = {name: uuid.UUID(key_id) for name, key_id in members.items()}
    return table


def _encode_table(table: InvitationTable) -> dict[str, dict[str, str]]:
    return {
        group: {name: str(key_id) for name, key_id in members.items()}
        for group, members in table.items()
    }


def _load_table(file_key: FileKey, record: FileRecord) -> InvitationTable:
    blob = store.DATASTORE.get(record.invitation_table_id)
    if blob is None:
        raise ClientError("error retrieving InvitationTable")
    enc_key, mac_key = _invitation_table_keys(file_key.enc_key, file_key.mac_key)
    try:
        return _decode_table(auth_sym_dec(blob, enc_key, mac_key))
    except (EnvelopeError, ValueError) as exc:
        raise ClientError(f"error decrypting InvitationTable: {exc}") from exc


def _seal_table(table: InvitationTable, enc_key: bytes, mac_key: bytes) -> bytes:
    table_enc_key, table_mac_key = _invitation_table_keys(enc_key, mac_key)
    return auth_sym_enc(_encode_table(table), table_enc_key, table_mac_key)


def create_invitation(user: User, filename: str, recipient_username: str) -> uuid.UUID:
    """Invite ``recipient_username`` to ``filename``; return the invitation's id."""
    with _failures("error creating invitation"):
        info, file_key, record = user._open_file(filename)

        recipient_key = FileKey(
            self_id=uuid.uuid4(), enc_key=file_key.enc_key, mac_key=file_key.mac_key
        )
        recipient_enc_key = _public_enc_key(recipient_username)
        enc_recipient_key = auth_asym_enc(recipient_key, recipient_enc_key, user.sign_key)

        is_owner = info.owner == user.username
        invitation = FileInfo(
            self_id=uuid.uuid4(),
            owner=info.owner,
            inviter=user.username,
            access_group=recipient_username if is_owner else info.access_group,
            file_id=info.file_id,
            file_key_id=recipient_key.self_id,
        )
        enc_invitation = auth_hybrid_enc(invitation, recipient_enc_key, user.sign_key)

        table = _load_table(file_key, record)
        if is_owner:
            table[recipient_username] = {recipient_username: recipient_key.self_id}
        else:
            group = table.get(info.access_group)
            if group is None:
                raise ClientError(f"access group {info.access_group!r} has been revoked")
            group[recipient_username] = recipient_key.self_id
        enc_table = _seal_table(table, file_key.enc_key, file_key.mac_key)

        store.DATASTORE.set(recipient_key.self_id, enc_recipient_key)
        store.DATASTORE.set(invitation.self_id, enc_invitation)
        store.DATASTORE.set(record.invitation_table_id, enc_table)
        return invitation.self_id


def accept_invitation(
    user: User, sender_username: str, invitation_id: uuid.UUID, filename: str
) -> None:
    """Accept an invitation from ``sender_username`` and file it under ``filename``."""
    with _failures("error accepting invitation"):
        file_info_id = user._file_info_id(filename)
        if file_info_id in store.DATASTORE:
            try:
                user._open_file(filename)
            except ClientError:
                pass  # an entry we can no longer open may be replaced
            else:
                raise ClientError(f"file {filename} already exists")

        enc_invitation = store.DATASTORE.get(invitation_id)
        if enc_invitation is None:
            raise ClientError("error retrieving Invitation")
        sender_verify_key = _public_verify_key(sender_username)
        try:
            invitation = FileInfo.from_dict(
                auth_hybrid_dec(enc_invitation, user.dec_key, sender_verify_key)
            )
        except (EnvelopeError, ValueError) as exc:
            raise ClientError(f"error decrypting Invitation: {exc}") from exc
        if invitation.self_id != invitation_id:
            raise ClientError(
                f"Invitation id {invitation.self_id} does not match {invitation_id}"
            )
        if invitation.inviter != sender_username:
            raise ClientError("Invitation inviter does not match sender")

        enc_file_key = store.DATASTORE.get(invitation.file_key_id)
        if enc_file_key is None:
            raise ClientError("error retrieving FileKey")
        try:
            file_key = FileKey.from_dict(
                auth_asym_dec(enc_file_key, user.dec_key, sender_verify_key)
            )
        except (EnvelopeError, ValueError):
            owner_verify_key = _public_verify_key(invitation.owner)
            try:
                file_key = FileKey.from_dict(
                    auth_asym_dec(enc_file_key, user.dec_key, owner_verify_key)
                )
            except (EnvelopeError, ValueError) as exc:
                raise ClientError(f"error decrypting FileKey: {exc}") from exc
        if file_key.self_id != invitation.file_key_id:
            raise ClientError("FileKey id does not match FileInfo")

        enc_record = store.DATASTORE.get(invitation.file_id)
        if enc_record is None:
            raise ClientError("error retrieving File")
        try:
            FileRecord.from_dict(auth_sym_dec(enc_record, file_key.enc_key, file_key.mac_key))
        except (EnvelopeError, ValueError) as exc:
            raise ClientError(f"error decrypting File: {exc}") from exc

        invitation.self_id = file_info_id
        enc_info = user._save_file_info(filename, invitation)

        store.DATASTORE.delete(invitation_id)
        store.DATASTORE.set(file_info_id, enc_info)


def revoke_access(user: User, filename: str, recipient_username: str) -> None:
    """Revoke the access of ``recipient_username`` and everyone they shared with."""
    with _failures("error revoking access"):
        writes: dict[uuid.UUID, bytes] = {}
        info, file_key, record = user._open_file(filename)
        table = _load_table(file_key, record)
        table.pop(recipient_username, None)

        new_enc_key = random_bytes(AES_KEY_SIZE)
        new_mac_key = random_bytes(AES_KEY_SIZE)
        writes[record.invitation_table_id] = _seal_table(table, new_enc_key, new_mac_key)
        writes[info.file_id] = auth_sym_enc(record, new_enc_key, new_mac_key)

        for block_id, index, block in _iter_blocks(file_key.enc_key, file_key.mac_key, record):
            purpose = f"/Block{index}".encode("utf-8")
            from vaultshare.envelope import hash_kdf16

            writes[block_id] = auth_sym_enc(
                block, hash_kdf16(new_enc_key, purpose), hash_kdf16(new_mac_key, purpose)
            )

        own_key = FileKey(self_id=info.file_key_id, enc_key=new_enc_key, mac_key=new_mac_key)
        writes[file_key.self_id] = auth_asym_enc(
            own_key, _public_enc_key(user.username), user.sign_key
        )

        for members in table.values():
            for name, key_id in members.items():
                member_key = FileKey(self_id=key_id, enc_key=new_enc_key, mac_key=new_mac_key)
                writes[key_id] = auth_asym_enc(
                    member_key, _public_enc_key(name), user.sign_key
                )

        for key, value in writes.items():
            store.DATASTORE.set(key, value)