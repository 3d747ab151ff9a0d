"""Kind-dispatched content decoding.

Every record entering an aggregator is classified exactly once into one of
three shapes:

* [Plain][nostrgather.services.decoding.Plain]: content is already
  readable and passes through untouched.
* [SymmetricEncrypted][nostrgather.services.decoding.SymmetricEncrypted]:
  a NIP-04 direct message (kind 4). The shared secret is derived from the
  counterparty, which is the author when the local identity is the tagged
  recipient and the tagged recipient when the local identity is the author.
* [Wrapped][nostrgather.services.decoding.Wrapped]: a NIP-59 gift wrap
  (kind 1059) whose content is a complete inner record. The inner record
  replaces the outer one for all downstream use.

[RecordResolver.resolve()][nostrgather.services.decoding.RecordResolver.resolve]
is the single entry point. Decoded content is attached to a new record via
[Record.with_content()][nostrgather.models.record.Record.with_content]; the
wire record is never modified.

See Also:
    [ContentDecoder][nostrgather.nips.decoder.ContentDecoder]: The
        cryptographic collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from nostrgather.core.exceptions import DecodeError, NotAddressedToMeError
from nostrgather.models import EventKind


if TYPE_CHECKING:
    from nostrgather.models import Record
    from nostrgather.nips.decoder import ContentDecoder


@dataclass(frozen=True, slots=True)
class Plain:
    """Record whose content needs no decoding."""

    record: Record


@dataclass(frozen=True, slots=True)
class SymmetricEncrypted:
    """Shared-secret encrypted record and the counterparty of the secret."""

    record: Record
    counterparty: str


@dataclass(frozen=True, slots=True)
class Wrapped:
    """Sealed envelope carrying a complete inner record."""

    record: Record


Classified: TypeAlias = Plain | SymmetricEncrypted | Wrapped


def resolve_counterparty(record: Record, identity: str) -> str:
    """Return the other party of a direct message seen by *identity*.

    Raises:
        NotAddressedToMeError: If the record has no recipient tag, or the
            local identity is neither exactly the author nor exactly the
            recipient.
    """
    recipient = record.first_tag_value("p")
    if recipient is None:
        raise NotAddressedToMeError("direct message has no recipient tag", record.id)
    if recipient == identity and record.pubkey != identity:
        return record.pubkey
    if record.pubkey == identity and recipient != identity:
        return recipient
    raise NotAddressedToMeError("direct message is not addressed to the local identity", record.id)


def classify(record: Record, identity: str | None) -> Classified:
    """Select the decode strategy for *record* by its kind."""
    if record.kind == EventKind.ENCRYPTED_DIRECT_MESSAGE:
        if identity is None:
            raise DecodeError("no local identity to decrypt with", record.id)
        return SymmetricEncrypted(record, resolve_counterparty(record, identity))
    if record.kind == EventKind.GIFT_WRAP:
        return Wrapped(record)
    return Plain(record)


class RecordResolver:
    """Turns wire records into readable records.

    Args:
        decoder: Cryptographic collaborator, or ``None`` when no local keys
            are configured (decode-requiring records then fail with
            [DecodeError][nostrgather.core.exceptions.DecodeError]).
    """

    def __init__(self, decoder: ContentDecoder | None = None) -> None:
        self._decoder = decoder

    @property
    def identity(self) -> str | None:
        return self._decoder.identity if self._decoder is not None else None

    async def resolve(self, record: Record) -> Record:
        """Return the readable form of *record*.

        Raises:
            DecodeError: If decryption or unwrapping fails.
            NotAddressedToMeError: If a direct message involves neither
                side as the local identity.
        """
        classified = classify(record, self.identity)
        if isinstance(classified, Plain):
            return classified.record

        decoder = self._decoder
        if decoder is None:
            raise DecodeError("no local keys configured", record.id)

        try:
            if isinstance(classified, SymmetricEncrypted):
                plaintext = await decoder.decrypt_shared(classified.counterparty, record.content)
                return record.with_content(plaintext)
            return await decoder.unwrap_envelope(record)
        except ValueError as e:
            raise DecodeError(str(e), record.id) from e
