"""Records kept in the datastore, with their JSON wire form."""

from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

NIL_UUID = uuid.UUID(int=0)


def _encode_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _decode_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise ValueError("expected a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64 data: {exc}") from exc


def _decode_uuid(value: Any) -> uuid.UUID:
    if not isinstance(value, str):
        raise ValueError("expected a UUID string")
    return uuid.UUID(value)


def _field(data: Mapping[str, Any], name: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError("record must be a JSON object")
    try:
        return data[name]
    except KeyError as exc:
        raise ValueError(f"missing field {name!r}") from exc


def _decode_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value


def _decode_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("expected an integer")
    return value


@dataclass
class FileInfo:
    """A user's personal entry point to a file, or an invitation to one."""

    self_id: uuid.UUID
    owner: str
    inviter: str
    access_group: str
    file_id: uuid.UUID
    file_key_id: uuid.UUID

    def to_dict(self) -> dict[str, Any]:
        return {
            "SelfID": str(self.self_id),
            "Owner": self.owner,
            "Inviter": self.inviter,
            "AccessGroup": self.access_group,
            "FileID": str(self.file_id),
            "FileKeyID": str(self.file_key_id),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FileInfo:
        return cls(
            self_id=_decode_uuid(_field(data, "SelfID")),
            owner=_decode_str(_field(data, "Owner")),
            inviter=_decode_str(_field(data, "Inviter")),
            access_group=_decode_str(_field(data, "AccessGroup")),
            file_id=_decode_uuid(_field(data, "FileID")),
            file_key_id=_decode_uuid(_field(data, "FileKeyID")),
        )


@dataclass
class FileKey:
    """The symmetric keys protecting a file, as handed to one user."""

    self_id: uuid.UUID
    enc_key: bytes
    mac_key: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "SelfID": str(self.self_id),
            "EncKey": _encode_bytes(self.enc_key),
            "MacKey": _encode_bytes(self.mac_key),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FileKey:
        return cls(
            self_id=_decode_uuid(_field(data, "SelfID")),
            enc_key=_decode_bytes(_field(data, "EncKey")),
            mac_key=_decode_bytes(_field(data, "MacKey")),
        )


@dataclass
class FileRecord:
    """The head of a file: its block count, last block and invitation table."""

    num_blocks: int
    last_block_id: uuid.UUID
    invitation_table_id: uuid.UUID

    def to_dict(self) -> dict[str, Any]:
        return {
            "NumBlocks": self.num_blocks,
            "LastBlockID": str(self.last_block_id),
            "InvitationTableID": str(self.invitation_table_id),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FileRecord:
        return cls(
            num_blocks=_decode_int(_field(data, "NumBlocks")),
            last_block_id=_decode_uuid(_field(data, "LastBlockID")),
            invitation_table_id=_decode_uuid(_field(data, "InvitationTableID")),
        )


@dataclass
class FileBlock:
    """One appended chunk of file content, linked to the block before it."""

    data: bytes
    prev_block_id: uuid.UUID

    def to_dict(self) -> dict[str, Any]:
        return {
            "Data": _encode_bytes(self.data),
            "PrevBlockID": str(self.prev_block_id),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FileBlock:
        return cls(
            data=_decode_bytes(_field(data, "Data")),
            prev_block_id=_decode_uuid(_field(data, "PrevBlockID")),
        )