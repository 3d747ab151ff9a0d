"""Key management and relay transport.

The utils layer sits in the middle of the diamond DAG, depending only on
[nostrgather.models][nostrgather.models]. It has **zero** imports from
``nostrgather.core`` or ``nostrgather.services``; failures surface as
``OSError``/``TimeoutError``/``ssl.SSLError`` and are classified by the
services layer.

Attributes:
    keys: Nostr key loading from environment variables (nsec1 bech32 or hex)
        with Pydantic validation, and identity parsing (hex/npub).
    transport: Structural ``Protocol`` contracts for relay transports and
        connections, plus the end-of-stored-records marker.
    protocol: nostr-sdk backed implementation of the transport contracts.
"""
