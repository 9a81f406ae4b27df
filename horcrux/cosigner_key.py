"""Ed25519 key shards held by each cosigner, and their JSON file format."""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass

_ED25519_SIZE = 32
_SECP256K1_SIZE = 33
_ED25519_FIELD = 1
_SECP256K1_FIELD = 2
_AMINO_ED25519_PREFIX = bytes([0x16, 0x24, 0xDE, 0x64])


class KeyDecodeError(ValueError):
    """Raised when a key file or encoded public key cannot be read."""


def _uvarint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _read_uvarint(data: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise KeyDecodeError("unexpected EOF")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value, pos
        shift += 7
        if shift >= 64:
            raise KeyDecodeError("proto: integer overflow")


def encode_pub_key(pub_key: bytes) -> bytes:
    """Encode a public key as a protobuf PublicKey message."""
    if len(pub_key) == _ED25519_SIZE:
        field_number = _ED25519_FIELD
    elif len(pub_key) == _SECP256K1_SIZE:
        field_number = _SECP256K1_FIELD
    else:
        raise ValueError(f"toproto: key of size {len(pub_key)} is not supported")
    return _uvarint(field_number << 3 | 2) + _uvarint(len(pub_key)) + bytes(pub_key)


def _decode_proto(data: bytes) -> bytes:
    pos = 0
    found: tuple[int, bytes] | None = None
    while pos < len(data):
        key, pos = _read_uvarint(data, pos)
        field_number, wire_type = key >> 3, key & 7
        if field_number == 0:
            raise KeyDecodeError("proto: PublicKey: illegal tag 0")
        if wire_type == 0:
            _, pos = _read_uvarint(data, pos)
        elif wire_type == 1:
            pos += 8
        elif wire_type == 5:
            pos += 4
        elif wire_type == 2:
            length, pos = _read_uvarint(data, pos)
            end = pos + length
            if end > len(data):
                raise KeyDecodeError("unexpected EOF")
            if field_number in (_ED25519_FIELD, _SECP256K1_FIELD):
                found = (field_number, data[pos:end])
            pos = end
        else:
            raise KeyDecodeError(f"proto: illegal wireType {wire_type}")
        if pos > len(data):
            raise KeyDecodeError("unexpected EOF")
    if found is None:
        raise KeyDecodeError("fromproto: key type is not supported")
    field_number, key_bytes = found
    expected = _ED25519_SIZE if field_number == _ED25519_FIELD else _SECP256K1_SIZE
    name = "PubKeyEd25519" if field_number == _ED25519_FIELD else "PubKeySecp256k1"
    if len(key_bytes) != expected:
        raise KeyDecodeError(
            f"invalid size for {name}. Got {len(key_bytes)}, expected {expected}"
        )
    return key_bytes


def _decode_amino(data: bytes) -> bytes:
    if not data.startswith(_AMINO_ED25519_PREFIX):
        raise KeyDecodeError("unrecognized amino prefix")
    length, pos = _read_uvarint(data, len(_AMINO_ED25519_PREFIX))
    if len(data) - pos != length:
        raise KeyDecodeError("amino: unexpected length")
    return data[pos:]


def decode_pub_key(data: bytes) -> bytes:
    """Decode a protobuf public key, falling back to the older amino encoding."""
    try:
        return _decode_proto(data)
    except KeyDecodeError as proto_error:
        try:
            return _decode_amino(data)
        except KeyDecodeError:
            raise proto_error from None


def _b64decode(value, name: str) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise KeyDecodeError(f"{name}: expected a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise KeyDecodeError(f"{name}: {exc}") from exc


@dataclass
class CosignerEd25519Key:
    """A single Ed25519 key shard of an m-of-n threshold signer."""

    pub_key: bytes
    private_shard: bytes
    id: int

    def to_json(self) -> str:
        return json.dumps(
            {
                "pubKey": base64.b64encode(encode_pub_key(self.pub_key)).decode("ascii"),
                "privateShard": base64.b64encode(self.private_shard).decode("ascii"),
                "id": self.id,
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "CosignerEd25519Key":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise KeyDecodeError(str(exc)) from exc
        if not isinstance(data, dict):
            raise KeyDecodeError("key file must hold a JSON object")
        key_id = data.get("id") or 0
        if not isinstance(key_id, int) or isinstance(key_id, bool):
            raise KeyDecodeError("id: expected an integer")
        return cls(
            pub_key=decode_pub_key(_b64decode(data.get("pubKey"), "pubKey")),
            private_shard=_b64decode(data.get("privateShard"), "privateShard"),
            id=key_id,
        )


def load_cosigner_ed25519_key(path: str | os.PathLike) -> CosignerEd25519Key:
    """Read a key shard from a JSON file."""
    with open(path, "rb") as fh:
        return CosignerEd25519Key.from_json(fh.read())


def write_cosigner_ed25519_shard_file(key: CosignerEd25519Key, path: str | os.PathLike) -> None:
    """Write a key shard to a JSON file readable only by its owner."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(key.to_json())