"""Proximity matcher — picks the courier to offer an order to.

Pure selection logic over plain candidates; it never reads or writes a
repository, so the same policy serves the periodic sweep, manual triggers
and the courier-came-online path.

Selection, first match wins:
    1. PRIMARY   nearest courier within the primary radius
    2. SECONDARY nearest within the secondary radius, only for orders that
                 have waited longer than the widening threshold
    3. GLOBAL    nearest located courier at any distance
    4. ORIGIN    pickup unknown: nearest to (0, 0), a deterministic tie-break
    5. ANY       nobody has a location: first candidate

MANUAL matches are built by the caller and never produced here.

Equal distances resolve to the earliest candidate in iteration order.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from dispatch.geo import haversine_km


class MatchTier(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    GLOBAL = "global"
    ORIGIN = "origin"
    ANY = "any"
    MANUAL = "manual"  # chosen by a dispatcher, not by distance


@dataclass(frozen=True)
class Candidate:
    """A courier eligible for matching, reduced to what selection needs."""

    courier_id: str
    name: str
    lat: float | None = None
    lng: float | None = None

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    @classmethod
    def from_courier(cls, courier) -> "Candidate":
        loc = courier.current_location
        return cls(
            courier_id=str(courier.id),
            name=courier.name,
            lat=loc.lat if loc else None,
            lng=loc.lng if loc else None,
        )


@dataclass(frozen=True)
class Match:
    candidate: Candidate
    tier: MatchTier
    distance_km: float | None = None  # None when no location data existed

    @property
    def courier_id(self) -> str:
        return self.candidate.courier_id


def _nearest(
    scored: Sequence[tuple[float, Candidate]], within_km: float = math.inf
) -> tuple[float, Candidate] | None:
    best = None
    for distance, candidate in scored:
        if distance > within_km:
            continue
        # strict comparison keeps the first of equal distances
        if best is None or distance < best[0]:
            best = (distance, candidate)
    return best


class ProximityMatcher:
    def __init__(
        self,
        primary_radius_km: float = 5.0,
        secondary_radius_km: float = 10.0,
        widen_after: timedelta = timedelta(seconds=60),
    ):
        self.primary_radius_km = primary_radius_km
        self.secondary_radius_km = secondary_radius_km
        self.widen_after = widen_after

    @classmethod
    def from_settings(cls, settings) -> "ProximityMatcher":
        return cls(
            primary_radius_km=settings.primary_radius_km,
            secondary_radius_km=settings.secondary_radius_km,
            widen_after=timedelta(seconds=settings.widen_after_seconds),
        )

    def may_widen(self, waiting_since: datetime | None, now: datetime) -> bool:
        if waiting_since is None:
            return False
        return now - waiting_since > self.widen_after

    def select(
        self,
        candidates: Iterable[Candidate],
        pickup: tuple[float, float] | None = None,
        waiting_since: datetime | None = None,
        now: datetime | None = None,
    ) -> Match | None:
        """Return the chosen candidate, or None if there are no candidates."""
        candidates = list(candidates)
        if not candidates:
            return None

        located = [c for c in candidates if c.has_location]

        if pickup is None:
            if not located:
                return Match(candidate=candidates[0], tier=MatchTier.ANY)
            scored = [(haversine_km(0.0, 0.0, c.lat, c.lng), c) for c in located]
            distance, chosen = _nearest(scored)
            return Match(candidate=chosen, tier=MatchTier.ORIGIN, distance_km=distance)

        if not located:
            return Match(candidate=candidates[0], tier=MatchTier.ANY)

        p_lat, p_lng = pickup
        scored = [(haversine_km(p_lat, p_lng, c.lat, c.lng), c) for c in located]

        hit = _nearest(scored, self.primary_radius_km)
        if hit:
            return Match(candidate=hit[1], tier=MatchTier.PRIMARY, distance_km=hit[0])

        if now is not None and self.may_widen(waiting_since, now):
            hit = _nearest(scored, self.secondary_radius_km)
            if hit:
                return Match(candidate=hit[1], tier=MatchTier.SECONDARY, distance_km=hit[0])

        distance, chosen = _nearest(scored)
        return Match(candidate=chosen, tier=MatchTier.GLOBAL, distance_km=distance)
