"""
Per-call record selection filter (NIP-01 ``REQ`` filter).

A [RecordFilter][nostrgather.models.filter.RecordFilter] is scoped to a
single query or subscription and is never persisted. It serializes to the
NIP-01 wire form via
[to_dict()][nostrgather.models.filter.RecordFilter.to_dict] and can be
evaluated locally with
[matches()][nostrgather.models.filter.RecordFilter.matches].
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._validation import validate_str_no_null, validate_timestamp


if TYPE_CHECKING:
    from .record import Record


def _freeze_tags(tags: Mapping[str, Any] | None) -> Mapping[str, tuple[str, ...]]:
    """Normalize tag constraints into an immutable ``{letter: values}`` mapping."""
    if not tags:
        return MappingProxyType({})
    frozen: dict[str, tuple[str, ...]] = {}
    for name, values in tags.items():
        validate_str_no_null(name, "tag name")
        if len(name) != 1 or not name.isalpha():
            raise ValueError(f"tag constraint must be a single letter, got {name!r}")
        frozen[name] = tuple(values)
    return MappingProxyType(frozen)


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """Immutable NIP-01 filter.

    All fields are optional; an unset field does not constrain the
    selection. Sequences are normalized to tuples on construction.

    Attributes:
        ids: Record ids to select.
        kinds: Record kinds to select.
        authors: Author identities to select.
        tags: Single-letter tag constraints (``{"p": ("<hex>",)}``).
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        search: NIP-50 full-text query, routed to search-capable endpoints.
        limit: Maximum number of stored records each endpoint should return.

    Examples:
        ```python
        f = RecordFilter(kinds=(EventKind.TEXT_NOTE,), authors=(pub,), limit=20)
        f.to_dict()  # {"kinds": [1], "authors": ["..."], "limit": 20}
        ```
    """

    ids: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    search: str | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        """Normalize sequences to tuples and validate scalar bounds."""
        for name in ("ids", "kinds", "authors"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(value))
        object.__setattr__(self, "tags", _freeze_tags(self.tags))
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)
        if self.search is not None:
            validate_str_no_null(self.search, "search")

    @property
    def requests_single_id(self) -> bool:
        """Whether this filter selects exactly one record by id."""
        return self.ids is not None and len(self.ids) == 1

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 wire form, omitting unset fields."""
        data: dict[str, Any] = {}
        if self.ids is not None:
            data["ids"] = list(self.ids)
        if self.kinds is not None:
            data["kinds"] = [int(k) for k in self.kinds]
        if self.authors is not None:
            data["authors"] = list(self.authors)
        for name, values in self.tags.items():
            data[f"#{name}"] = list(values)
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.search is not None:
            data["search"] = self.search
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    def matches(self, record: Record) -> bool:
        """Evaluate this filter locally against *record*.

        ``search`` and ``limit`` are relay-side concerns and are ignored.
        """
        if self.ids is not None and record.id not in self.ids:
            return False
        if self.kinds is not None and record.kind not in self.kinds:
            return False
        if self.authors is not None and record.pubkey not in self.authors:
            return False
        if self.since is not None and record.created_at < self.since:
            return False
        if self.until is not None and record.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not set(record.tag_values(name)) & set(values):
                return False
        return True
