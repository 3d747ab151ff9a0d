"""Content decoder for encrypted and wrapped records.

Defines the [ContentDecoder][nostrgather.nips.decoder.ContentDecoder]
contract consumed by the decoding pipeline and its nostr-sdk backed
implementation:

* NIP-04: ``decrypt_shared`` derives the ECDH shared secret from the
  counterparty's public key and the local secret key, then decrypts.
* NIP-59: ``unwrap_envelope`` opens a gift wrap (kind 1059) with the local
  key, opens the seal inside it, and returns the rumor as a complete inner
  record. The rumor author must match the seal signer.

Both operations raise ``ValueError`` on any failure; the services layer
wraps it in [DecodeError][nostrgather.core.exceptions.DecodeError] and drops
the offending record.

See Also:
    [RecordResolver][nostrgather.services.decoding.RecordResolver]: Picks the
        strategy per record kind and calls this decoder.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSigner, PublicKey, UnwrappedGift, nip04_decrypt

from nostrgather.models import Record


if TYPE_CHECKING:
    from nostr_sdk import Keys


def compute_record_id(data: dict[str, Any]) -> str:
    """Compute the NIP-01 id (SHA-256 of the canonical serialization) of *data*."""
    serialized = json.dumps(
        [0, data["pubkey"], data["created_at"], data["kind"], data["tags"], data["content"]],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@runtime_checkable
class ContentDecoder(Protocol):
    """Decrypts shared-secret payloads and unwraps sealed envelopes."""

    @property
    def identity(self) -> str:
        """Hex public key of the local identity."""
        ...

    async def decrypt_shared(self, counterparty: str, ciphertext: str) -> str:
        """Decrypt *ciphertext* with the secret shared with *counterparty*."""
        ...

    async def unwrap_envelope(self, record: Record) -> Record:
        """Return the complete inner record carried by the envelope *record*."""
        ...


class NostrContentDecoder:
    """[ContentDecoder][nostrgather.nips.decoder.ContentDecoder] backed by nostr-sdk.

    Args:
        keys: Local key pair; the secret key never leaves this object.
    """

    def __init__(self, keys: Keys) -> None:
        self._keys = keys
        self._signer = NostrSigner.keys(keys)
        self._identity = keys.public_key().to_hex()

    @property
    def identity(self) -> str:
        return self._identity

    async def decrypt_shared(self, counterparty: str, ciphertext: str) -> str:
        try:
            return nip04_decrypt(self._keys.secret_key(), PublicKey.parse(counterparty), ciphertext)
        except Exception as e:  # nostr-sdk raises its own NostrError type
            raise ValueError(f"shared-secret decryption failed: {e}") from e

    async def unwrap_envelope(self, record: Record) -> Record:
        try:
            unwrapped = await UnwrappedGift.from_gift_wrap(
                self._signer, NostrEvent.from_json(record.to_json())
            )
            sender = unwrapped.sender().to_hex()
            data = json.loads(unwrapped.rumor().as_json())
        except Exception as e:  # nostr-sdk raises its own NostrError type
            raise ValueError(f"envelope unwrap failed: {e}") from e

        if data.get("pubkey") != sender:
            raise ValueError("envelope rumor author does not match seal signer")
        if not data.get("id"):
            data["id"] = compute_record_id(data)
        try:
            return Record.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"malformed inner record: {e}") from e
