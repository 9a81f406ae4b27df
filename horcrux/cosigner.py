"""Cosigner interfaces and the messages exchanged between cosigners."""

from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Sequence


class Cosigner(abc.ABC):
    """One participant of an m-of-n threshold signature."""

    @property
    @abc.abstractmethod
    def id(self) -> int:
        """Shamir index of this cosigner, starting at 1."""

    @property
    @abc.abstractmethod
    def address(self) -> str:
        """Peer-to-peer URL used for RPC and consensus traffic."""

    @abc.abstractmethod
    def get_pub_key(self, chain_id: str) -> bytes:
        """Return the combined public key for a chain."""

    @abc.abstractmethod
    def verify_signature(self, chain_id: str, payload: bytes, signature: bytes) -> bool:
        """Check a signature against the combined public key."""

    @abc.abstractmethod
    def get_nonces(self, uuids: Sequence[uuid.UUID]) -> list["CosignerUUIDNonces"]:
        """Return nonces for all cosigner shards, one set per UUID."""

    @abc.abstractmethod
    def set_nonces_and_sign(
        self, request: "CosignerSetNoncesAndSignRequest"
    ) -> "CosignerSignResponse":
        """Sign the requested bytes with the given nonces."""


class Leader(abc.ABC):
    """Tells whether this node currently leads the cluster."""

    @abc.abstractmethod
    def is_leader(self) -> bool:
        """Return True when this node is the leader."""


class CosignerSecurity(abc.ABC):
    """Security layer that encrypts and authenticates nonces between cosigners."""

    @property
    @abc.abstractmethod
    def id(self) -> int:
        """ID of the cosigner owning this security layer."""

    @abc.abstractmethod
    def encrypt_and_sign(
        self, cosigner_id: int, nonce_pub: bytes, nonce_share: bytes
    ) -> "CosignerNonce":
        """Encrypt a nonce for a destination cosigner and sign it."""

    @abc.abstractmethod
    def decrypt_and_verify(
        self,
        cosigner_id: int,
        encrypted_nonce_pub: bytes,
        encrypted_nonce_share: bytes,
        signature: bytes,
    ) -> tuple[bytes, bytes]:
        """Decrypt a nonce and verify it came from the source cosigner."""


def get_by_id(cosigners: Iterable[Cosigner], cosigner_id: int) -> Cosigner | None:
    """Return the cosigner with the given ID, or None."""
    return next((c for c in cosigners if c.id == cosigner_id), None)


@dataclass
class CosignerSignRequest:
    """Request for a cosigner's signature over serialized block bytes."""

    chain_id: str
    sign_bytes: bytes
    uuid: uuid.UUID


@dataclass
class CosignerSignResponse:
    nonce_public: bytes
    timestamp: datetime
    signature: bytes


@dataclass
class CosignerNonce:
    source_id: int
    destination_id: int
    pub_key: bytes = b""
    share: bytes = b""
    signature: bytes = b""


@dataclass
class CosignerUUIDNonces:
    uuid: uuid.UUID
    nonces: list[CosignerNonce] = field(default_factory=list)

    def for_destination(self, cosigner_id: int) -> "CosignerUUIDNonces":
        """Return only the nonces addressed to the given cosigner."""
        return CosignerUUIDNonces(
            uuid=self.uuid,
            nonces=[n for n in self.nonces if n.destination_id == cosigner_id],
        )


@dataclass
class CosignerSetNoncesAndSignRequest:
    chain_id: str
    nonces: CosignerUUIDNonces
    hrst: Any
    sign_bytes: bytes