"""
Resolution -- pick the single effective rule "as of" a date.

Responsibility:
    Implements the selection rule shared by configurations and per-component
    rates.  Selectors load the candidate rows for one classification code and
    hand them here; this module decides which one applies.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (logging only).

Selection rule, in order:
    1. active rows only
    2. effective_from <= as_of AND (effective_to IS NULL OR effective_to >= as_of)
    3. exact business type
    4. exact zone beats wildcard (NULL zone); a request with zone=None only
       matches wildcard rows
    5. several survivors: latest effective_from wins, then highest
       version_number, then smallest id.  A consistency warning is logged.
    6. no survivor: None (the caller raises its typed NotFoundError)

Invariants enforced:
    Deterministic: the same candidates and arguments always select the same
    row, regardless of the order the candidates were loaded in.

Failure modes:
    (none -- returns None on no match)

Audit relevance:
    The ``resolution_consistency_warning`` log names every tied row id.  A
    tie means the no-overlap invariant was bypassed (raw SQL, legacy data)
    and should be investigated.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, Sequence, TypeVar
from uuid import UUID

from gst_kernel.domain.enums import BusinessType, GeographicalZone
from gst_kernel.logging_config import get_logger

logger = get_logger("domain.resolution")


class EffectiveRule(Protocol):
    id: UUID
    business_type: BusinessType
    geographical_zone: GeographicalZone | None
    effective_from: date
    effective_to: date | None
    is_active: bool


RuleT = TypeVar("RuleT", bound=EffectiveRule)


def effective_on(rows: Iterable[RuleT], as_of: date) -> list[RuleT]:
    """Steps 1-2: active rows whose window contains ``as_of``."""
    return [
        r
        for r in rows
        if r.is_active
        and r.effective_from <= as_of
        and (r.effective_to is None or r.effective_to >= as_of)
    ]


def _tie_break_key(row: EffectiveRule) -> tuple:
    return (
        row.effective_from,
        getattr(row, "version_number", 0),
        # Smaller id wins among otherwise equal rows
        tuple(-b for b in row.id.bytes),
    )


def select_effective(
    candidates: Sequence[RuleT],
    business_type: BusinessType,
    zone: GeographicalZone | None,
    as_of: date,
    *,
    scope: str = "configuration",
) -> RuleT | None:
    """
    Select the single effective rule, or None.

    Args:
        candidates: Rows for ONE classification code (and, for rates, one
            component type).  Other filters are applied here.
        business_type: Exact business type to match.
        zone: Normalized zone (None = wildcard only).
        as_of: Calendar date the rule must be effective on.
        scope: Label used in logs ("configuration" or "rate:IGST").
    """
    in_window = effective_on(candidates, as_of)
    same_type = [r for r in in_window if r.business_type == business_type]

    exact = [r for r in same_type if zone is not None and r.geographical_zone == zone]
    survivors = exact or [r for r in same_type if r.geographical_zone is None]

    if not survivors:
        return None
    if len(survivors) == 1:
        return survivors[0]

    chosen = max(survivors, key=_tie_break_key)
    logger.warning(
        "resolution_consistency_warning",
        extra={
            "scope": scope,
            "business_type": business_type.value,
            "zone": zone.value if zone else None,
            "as_of": as_of,
            "tied_ids": sorted(str(r.id) for r in survivors),
            "chosen_id": str(chosen.id),
        },
    )
    return chosen


def find_overlaps(
    window_start: date,
    window_end: date | None,
    existing: Iterable[RuleT],
    *,
    exclude_id: UUID | None = None,
) -> list[RuleT]:
    """
    Active rows in ``existing`` whose window intersects [start, end].

    ``existing`` must already be restricted to one scope.  Ordered by
    effective_from so the first conflict reported is the earliest one.
    """
    hits = [
        r
        for r in existing
        if r.is_active
        and r.id != exclude_id
        and (window_end is None or r.effective_from <= window_end)
        and (r.effective_to is None or window_start <= r.effective_to)
    ]
    return sorted(hits, key=lambda r: (r.effective_from, str(r.id)))
