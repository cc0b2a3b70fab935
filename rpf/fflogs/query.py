# fflogs/query.py
# ============================================================================
# Requête GraphQL "batch" : FFLogs n'a pas de notion de lot de personnages,
# on émet donc un sous-requête aliasée (char0, char1, ...) par joueur dans une
# seule requête externe, puis on redistribue la réponse par index.
# ============================================================================

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rpf.fflogs.errors import PartialDataError
from rpf.fflogs.mapping import JOB_IDS
from rpf.models.parses import NO_LOG, EncounterScore

MAX_BATCH_SIZE = 20
ALIAS_PREFIX = "char"

# (name, server, region)
BatchPlayer = Tuple[str, str, str]
# (encounter_id, score) pour chaque boss de la zone
ZoneParses = List[Tuple[int, EncounterScore]]

log = logging.getLogger(__name__)


def alias_for(index: int) -> str:
    return f"{ALIAS_PREFIX}{index}"


def _gql_str(value: str) -> str:
    """Littéral chaîne GraphQL (échappement compatible JSON)."""
    return json.dumps(value)


def build_batch_query(
    players: Sequence[BatchPlayer],
    zone_id: int,
    difficulty_id: Optional[int] = None,
    partition: Optional[int] = None,
) -> str:
    """
    Build one GraphQL query fetching the zone rankings of every player.

    Args:
        players: up to MAX_BATCH_SIZE (name, server, region) tuples
        zone_id: FFLogs zone ID
        difficulty_id: optional difficulty (101 = Savage)
        partition: optional partition of the zone

    Returns:
        The query text; player i is addressed by the alias ``char{i}``.
    """
    if not players:
        raise ValueError("cannot build a batch query without players")
    if len(players) > MAX_BATCH_SIZE:
        raise ValueError(f"batch of {len(players)} players exceeds {MAX_BATCH_SIZE}")

    ranking_args = [f"zoneID: {int(zone_id)}"]
    if difficulty_id is not None:
        ranking_args.append(f"difficulty: {int(difficulty_id)}")
    if partition is not None:
        ranking_args.append(f"partition: {int(partition)}")
    ranking_args += ["metric: rdps", "timeframe: Historical"]
    rankings = ", ".join(ranking_args)

    parts = []
    for i, (name, server, region) in enumerate(players):
        parts.append(
            f"{alias_for(i)}: character(name: {_gql_str(name)}, "
            f"serverSlug: {_gql_str(server.strip().lower())}, "
            f"serverRegion: {_gql_str(region)}) {{ zoneRankings({rankings}) }}"
        )

    return "query { characterData { " + " ".join(parts) + " } }"


def _decode_rankings(alias: str, node: Any) -> ZoneParses:
    if node is None:
        raise PartialDataError(f"{alias}: character not found")
    if not isinstance(node, dict):
        raise PartialDataError(f"{alias}: unexpected node {type(node).__name__}")

    zone_rankings = node.get("zoneRankings")
    if isinstance(zone_rankings, str):
        # zoneRankings est un scalaire JSON ; certains proxys le renvoient sérialisé
        try:
            zone_rankings = json.loads(zone_rankings)
        except ValueError as e:
            raise PartialDataError(f"{alias}: zoneRankings is not JSON") from e
    if not isinstance(zone_rankings, dict):
        raise PartialDataError(f"{alias}: zoneRankings missing")
    if "error" in zone_rankings:
        raise PartialDataError(f"{alias}: {zone_rankings['error']}")

    rankings = zone_rankings.get("rankings")
    if not isinstance(rankings, list):
        raise PartialDataError(f"{alias}: rankings missing")

    best: Dict[int, EncounterScore] = {}
    for item in rankings:
        if not isinstance(item, dict):
            continue
        encounter = item.get("encounter") or {}
        enc_id = encounter.get("id") if isinstance(encounter, dict) else None
        if not isinstance(enc_id, int) or isinstance(enc_id, bool):
            continue

        percent = item.get("rankPercent")
        if isinstance(percent, (int, float)) and not isinstance(percent, bool):
            percentile = max(0.0, min(100.0, float(percent)))
        else:
            percentile = NO_LOG

        spec = item.get("bestSpec") or item.get("spec")
        score = EncounterScore(percentile=percentile, job_id=JOB_IDS.get(spec) if spec else None)

        current = best.get(enc_id)
        if current is None or score.percentile > current.percentile:
            best[enc_id] = score

    return list(best.items())


def decode_batch(data: Any, count: int) -> List[Optional[ZoneParses]]:
    """
    Split the ``data`` member of a batch response back into per-player results.

    Returns one slot per input index, in input order: ``None`` when the alias is
    missing or unusable, otherwise the (encounter_id, score) list of the zone.
    """
    results: List[Optional[ZoneParses]] = [None] * count

    character_data = data.get("characterData") if isinstance(data, dict) else None
    if not isinstance(character_data, dict):
        log.debug("Batch response has no characterData, no data for %d players", count)
        return results

    for i in range(count):
        alias = alias_for(i)
        try:
            results[i] = _decode_rankings(alias, character_data.get(alias))
        except PartialDataError as e:
            log.debug("No parse data for %s", e)

    return results
