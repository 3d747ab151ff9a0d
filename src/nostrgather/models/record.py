"""
Immutable Nostr record with JSON round-tripping.

A [Record][nostrgather.models.record.Record] is the atomic, signed,
content-addressed unit of data exchanged with relays. Its ``id`` is derived
from its content, so decoded plaintext is never written back into the wire
record: [with_content()][nostrgather.models.record.Record.with_content]
returns a new instance instead.

See Also:
    [nostrgather.models.filter][]: Selection filters evaluated against records.
    [nostrgather.services.decoding][]: Produces plain records from encrypted
        or wrapped ones.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from ._validation import (
    is_hex_key,
    validate_hex_key,
    validate_str_no_null,
    validate_timestamp,
)
from .constants import EVENT_KIND_MAX


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent


_SIGNATURE_LENGTH = 128


@dataclass(frozen=True, slots=True)
class Record:
    """Immutable Nostr record (NIP-01 event).

    Validation is performed eagerly at construction time so invalid
    instances never escape the constructor.

    Attributes:
        id: 64-char lowercase hex event id (SHA-256 of the serialized event).
        pubkey: 64-char lowercase hex author identity.
        created_at: Unix timestamp in seconds.
        kind: Integer kind discriminator (0-65535).
        tags: Ordered tuple of tags, each a tuple of strings.
        content: Opaque content, possibly ciphertext.
        sig: 128-char hex Schnorr signature, or ``""`` for unsigned inner
            records recovered from a sealed envelope.
        decoded: ``True`` on copies made by
            [with_content()][nostrgather.models.record.Record.with_content].
            Their content no longer matches ``id`` and ``sig``, so they must
            not be sent back to a relay. Not part of equality.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a key is malformed, the kind is out of range, or
            any string contains null bytes.

    Examples:
        ```python
        record = Record.from_json(raw)
        record.first_tag_value("p")   # tagged recipient, if any
        plain = record.with_content("hello")
        plain.id == record.id         # True: identity is preserved
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...] = field(default=())
    content: str = ""
    sig: str = ""
    decoded: bool = field(default=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        """Validate all fields and normalize tags into nested tuples."""
        validate_hex_key(self.id, "id")
        validate_hex_key(self.pubkey, "pubkey")
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind {self.kind} out of valid range (0-{EVENT_KIND_MAX})")
        validate_str_no_null(self.content, "content")
        validate_str_no_null(self.sig, "sig")
        if self.sig and not is_hex_key(self.sig, _SIGNATURE_LENGTH):
            raise ValueError("sig must be 128 lowercase hex characters")

        if not isinstance(self.tags, (tuple, list)):
            raise TypeError(f"tags must be a sequence, got {type(self.tags).__name__}")
        normalized: list[tuple[str, ...]] = []
        for tag in self.tags:
            if not isinstance(tag, (tuple, list)):
                raise TypeError(f"tag must be a sequence, got {type(tag).__name__}")
            for value in tag:
                validate_str_no_null(value, "tag value")
            normalized.append(tuple(tag))
        # Bypass frozen restriction to store the normalized form
        object.__setattr__(self, "tags", tuple(normalized))

    # -- Tag helpers ---------------------------------------------------------

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in tag order."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]  # noqa: PLR2004

    def first_tag_value(self, name: str) -> str | None:
        """Return the first value of the first tag named *name*, or ``None``."""
        values = self.tag_values(name)
        return values[0] if values else None

    def with_content(self, content: str) -> Record:
        """Return a copy of this record carrying *content*.

        Used by the decoding pipeline to expose plaintext without mutating
        the canonical wire record.
        """
        return replace(self, content=content, decoded=True)

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object form of this record."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        """Serialize to a compact NIP-01 JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Build a record from a NIP-01 JSON object.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a field has the wrong type.
            ValueError: If a field fails validation.
        """
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=tuple(tuple(tag) for tag in data.get("tags", [])),
            content=data.get("content", ""),
            sig=data.get("sig") or "",
        )

    @classmethod
    def from_json(cls, raw: str) -> Record:
        """Parse a NIP-01 JSON string into a record.

        Raises:
            ValueError: If *raw* is not valid JSON or fails validation.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid record JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("record JSON must be an object")
        try:
            return cls.from_dict(data)
        except KeyError as e:
            raise ValueError(f"record JSON missing field {e}") from e

    @classmethod
    def from_nostr_event(cls, event: NostrEvent) -> Record:
        """Convert a ``nostr_sdk.Event`` (or ``UnsignedEvent``) into a record."""
        return cls.from_json(event.as_json())
