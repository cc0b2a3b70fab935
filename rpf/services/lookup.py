# rpf/services/lookup.py
# ============================================================================
# Lecture des parses au rendu : cache uniquement, jamais d'appel réseau.
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rpf.database import Listing
from rpf.db.parse_cache import ZoneCacheStore
from rpf.fflogs.mapping import FFLogsEncounter, get_fflogs_encounter
from rpf.models.parses import ZoneCacheEntry

NONE_TIER = "none"

# (percentile plancher, tier, couleur)
TIERS: Tuple[Tuple[int, str, str], ...] = (
    (100, "gold", "#E5CC80"),
    (99, "pink", "#E268A8"),
    (95, "orange", "#FF8000"),
    (75, "purple", "#A335EE"),
    (50, "blue", "#0070FF"),
    (25, "green", "#1EFF00"),
    (0, "gray", "#666666"),
)
TIER_COLORS: Dict[str, str] = {tier: color for _, tier, color in TIERS}


def classify(percentile: Optional[float]) -> str:
    """Tier of a percentile; None or negative (no log) gives "none"."""
    if percentile is None or percentile < 0:
        return NONE_TIER
    value = int(percentile)
    for floor, tier, _ in TIERS:
        if value >= floor:
            return tier
    return "gray"


def percentile_color(percentile: Optional[float]) -> Optional[str]:
    return TIER_COLORS.get(classify(percentile))


@dataclass(frozen=True)
class MemberParse:
    percentile: Optional[int] = None
    classification: str = NONE_TIER
    secondary_percentile: Optional[int] = None
    secondary_classification: str = NONE_TIER
    has_secondary: bool = False

    def to_dict(self) -> dict:
        return {
            "percentile": self.percentile,
            "classification": self.classification,
            "secondary_percentile": self.secondary_percentile,
            "secondary_classification": self.secondary_classification,
            "has_secondary": self.has_secondary,
        }


@dataclass
class ListingParses:
    listing_id: int
    members: Dict[int, MemberParse] = field(default_factory=dict)
    leader: MemberParse = field(default_factory=MemberParse)


def _score(entry: Optional[ZoneCacheEntry], encounter_id: Optional[int]) -> Tuple[Optional[int], str]:
    if entry is None or encounter_id is None:
        return None, NONE_TIER
    score = entry.score(encounter_id)
    if score is None or not score.has_log:
        return None, NONE_TIER
    return int(round(score.percentile)), classify(score.percentile)


def member_parse(entry: Optional[ZoneCacheEntry], encounter_id: int,
                 secondary_encounter_id: Optional[int] = None) -> MemberParse:
    percentile, tier = _score(entry, encounter_id)
    secondary, secondary_tier = _score(entry, secondary_encounter_id)
    return MemberParse(
        percentile=percentile,
        classification=tier,
        secondary_percentile=secondary,
        secondary_classification=secondary_tier,
        has_secondary=secondary_encounter_id is not None,
    )


class ParseLookup:
    """Cache-only parse lookups for listing rendering."""

    def __init__(self, store: ZoneCacheStore):
        self.store = store

    def lookup(
        self,
        zone_id: int,
        encounter_id: int,
        secondary_encounter_id: Optional[int],
        player_ids: Iterable[int],
    ) -> Dict[int, MemberParse]:
        """Percentile + tier for every requested player, from one batched read."""
        ids = [int(i) for i in player_ids]
        entries = self.store.get(ids, zone_id)
        return {
            content_id: member_parse(entries.get(content_id), encounter_id, secondary_encounter_id)
            for content_id in ids
        }

    def lookup_duty(self, duty_id: int, player_ids: Iterable[int]) -> Dict[int, MemberParse]:
        encounter = get_fflogs_encounter(duty_id)
        if encounter is None:
            return {int(i): MemberParse() for i in player_ids}
        return self.lookup(encounter.zone_id, encounter.encounter_id,
                           encounter.secondary_encounter_id, player_ids)

    def enrich_listings(self, listings: Iterable[Listing]) -> List[ListingParses]:
        """Member and leader parses for each listing, prefetching all players at once."""
        listings = list(listings)
        resolved: List[Tuple[Listing, Optional[FFLogsEncounter]]] = [
            (listing, get_fflogs_encounter(listing.duty_id) if listing.high_end else None)
            for listing in listings
        ]

        visible = {
            cid
            for listing, encounter in resolved if encounter is not None
            for cid in [*listing.member_ids, int(listing.leader_content_id or 0)] if cid
        }
        docs: Mapping[int, Dict[int, ZoneCacheEntry]] = self.store.get_all(visible) if visible else {}

        out: List[ListingParses] = []
        for listing, encounter in resolved:
            parses = ListingParses(listing_id=listing.listing_id)
            if encounter is None:
                parses.members = {cid: MemberParse() for cid in listing.member_ids}
                out.append(parses)
                continue

            def _for(cid: int) -> MemberParse:
                entry = docs.get(cid, {}).get(encounter.zone_id)
                return member_parse(entry, encounter.encounter_id, encounter.secondary_encounter_id)

            parses.members = {cid: _for(cid) for cid in listing.member_ids}
            if listing.leader_content_id:
                parses.leader = _for(int(listing.leader_content_id))
            out.append(parses)
        return out
