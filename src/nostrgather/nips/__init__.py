"""NIP-specific parsing and content decoding.

Depends only on [nostrgather.models][nostrgather.models]; failures surface
as ``ValueError`` and are classified by the services layer.

Attributes:
    nip02: Follow list (kind 3) parsing into an ordered identity list.
    nip65: Relay list (kind 10002) parsing into per-URL read/write usage.
    decoder: [ContentDecoder][nostrgather.nips.decoder.ContentDecoder]
        contract and its nostr-sdk implementation (NIP-04 decryption,
        NIP-59 gift-wrap unwrapping).
"""

from .nip02 import parse_follow_list
from .nip65 import RelayUsage, parse_relay_list


__all__ = [
    "RelayUsage",
    "parse_follow_list",
    "parse_relay_list",
]
