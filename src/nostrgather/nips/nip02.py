"""NIP-02 follow list parsing.

A follow list (kind 3) declares followed identities as ``p`` tags:
``["p", "<hex pubkey>", "<relay hint>", "<petname>"]``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nostrgather.models import EventKind
from nostrgather.models._validation import is_hex_key


if TYPE_CHECKING:
    from nostrgather.models import Record


logger = logging.getLogger(__name__)


def parse_follow_list(record: Record) -> list[str]:
    """Extract followed identities from a kind-3 record.

    Order is preserved, duplicates are dropped, and values that are not
    64-char hex keys are skipped.

    Raises:
        ValueError: If *record* is not a follow list.
    """
    if record.kind != EventKind.FOLLOW_LIST:
        raise ValueError(f"expected kind {EventKind.FOLLOW_LIST}, got {record.kind}")

    follows: dict[str, None] = {}
    for value in record.tag_values("p"):
        identity = value.strip().lower()
        if not is_hex_key(identity):
            logger.debug("follow_entry_skipped record=%s value=%s", record.id, value)
            continue
        follows.setdefault(identity, None)
    return list(follows)
