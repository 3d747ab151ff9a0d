"""NIP-65 relay list parsing.

A relay list (kind 10002) declares the endpoints a user reads from and
writes to as ``r`` tags. A tag without a marker means both; the ``read``
or ``write`` marker restricts it to one direction::

    ["r", "wss://alicerelay.example.com"]
    ["r", "wss://expensive-relay.example2.com", "write"]
    ["r", "wss://nostr-relay.example.com", "read"]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from nostrgather.models import EventKind, normalize_url


if TYPE_CHECKING:
    from nostrgather.models import Record


logger = logging.getLogger(__name__)


class RelayUsage(NamedTuple):
    """Read/write directions declared for one relay URL."""

    read: bool
    write: bool


def parse_relay_list(record: Record) -> dict[str, RelayUsage]:
    """Extract ``{normalized_url: RelayUsage}`` from a kind-10002 record.

    Invalid URLs are skipped. A URL listed more than once accumulates the
    union of its directions.

    Raises:
        ValueError: If *record* is not a relay list.
    """
    if record.kind != EventKind.RELAY_LIST:
        raise ValueError(f"expected kind {EventKind.RELAY_LIST}, got {record.kind}")

    relays: dict[str, RelayUsage] = {}
    for tag in record.tags:
        if len(tag) < 2 or tag[0] != "r":  # noqa: PLR2004
            continue
        try:
            url = normalize_url(tag[1])
        except (TypeError, ValueError) as e:
            logger.debug("relay_entry_skipped record=%s value=%s error=%s", record.id, tag[1], e)
            continue
        marker = tag[2] if len(tag) > 2 else ""  # noqa: PLR2004
        read = marker in ("", "read")
        write = marker in ("", "write")
        if not (read or write):
            continue
        previous = relays.get(url, RelayUsage(read=False, write=False))
        relays[url] = RelayUsage(read=previous.read or read, write=previous.write or write)
    return relays
