# rpf/services/sync.py
# ============================================================================
# Tâche de fond : récupère les parses FFLogs des joueurs présents dans les
# annonces haut niveau actives, zone par zone, par lots de 20, 1 s entre lots.
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from rpf.database import Listing, Player, utcnow
from rpf.db.parse_cache import ZoneCacheStore
from rpf.fflogs.client import FFLogsClient
from rpf.fflogs.errors import FFLogsError
from rpf.fflogs.mapping import (
    get_fflogs_encounter, is_fflogs_supported, region_from_server, zone_name, zone_partition,
)
from rpf.fflogs.query import MAX_BATCH_SIZE
from rpf.listings import ListingRepository
from rpf.models.parses import ZoneCacheEntry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncPlayer:
    content_id: int
    name: str
    server: str
    region: str

    @classmethod
    def from_player(cls, player: Player) -> "SyncPlayer":
        return cls(
            content_id=int(player.content_id),
            name=player.name,
            server=player.home_world,
            region=region_from_server(player.home_world),
        )


@dataclass
class ZoneGroup:
    """Joueurs uniques à synchroniser pour une zone."""
    zone_id: int
    difficulty_id: Optional[int]
    players: Dict[int, SyncPlayer] = field(default_factory=dict)


@dataclass
class SyncReport:
    listings: int = 0
    players: int = 0
    zones: int = 0
    batches: int = 0
    failed_batches: int = 0
    failed_zones: int = 0
    saved: int = 0
    parses: int = 0
    skipped: int = 0
    write_errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def roster_ids(listing: Listing) -> List[int]:
    """Membres connus de l'annonce, chef compris, sans doublon ni slot vide."""
    ids = list(listing.member_ids)
    if listing.leader_content_id and listing.leader_content_id not in ids:
        ids.append(int(listing.leader_content_id))
    return ids


def fflogs_listings(listings: Iterable[Listing]) -> List[Listing]:
    """Annonces haut niveau dont le duty a une zone FFLogs connue."""
    return [
        listing for listing in listings
        if listing.high_end and is_fflogs_supported(listing.duty_id)
    ]


def group_by_zone(listings: Iterable[Listing], players: Mapping[int, Player]) -> Dict[int, ZoneGroup]:
    """
    Group the resolved roster of each mapped listing by FFLogs zone.

    A player present in several listings of the same zone appears once. The
    difficulty of a zone is the one of the first listing seen for it. Pure:
    the same input always gives the same output.
    """
    groups: Dict[int, ZoneGroup] = {}
    for listing in listings:
        encounter = get_fflogs_encounter(listing.duty_id)
        if encounter is None:
            continue

        group = groups.get(encounter.zone_id)
        if group is None:
            group = groups[encounter.zone_id] = ZoneGroup(encounter.zone_id, encounter.difficulty_id)

        for content_id in roster_ids(listing):
            player = players.get(content_id)
            if player is not None and content_id not in group.players:
                group.players[content_id] = SyncPlayer.from_player(player)
    return groups


def chunked(items: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ParseSyncService:
    """Recurring FFLogs parse synchronisation (one cycle at a time)."""

    def __init__(
        self,
        client: Optional[FFLogsClient],
        store: ZoneCacheStore,
        listings: ListingRepository,
        batch_size: int = MAX_BATCH_SIZE,
        rate_limit_seconds: float = 1.0,
        interval_seconds: float = 60.0,
    ):
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.client = client
        self.store = store
        self.listings = listings
        self.batch_size = batch_size
        self.rate_limit_seconds = rate_limit_seconds
        self.interval_seconds = interval_seconds
        self.last_report: Optional[SyncReport] = None
        self._task: Optional[asyncio.Task] = None
        self._api_calls = 0

    @classmethod
    def from_settings(cls, settings) -> "ParseSyncService":
        client = None
        if settings.fflogs_configured:
            client = FFLogsClient(
                settings.FFLOGS_CLIENT_ID,
                settings.FFLOGS_CLIENT_SECRET,
                timeout=settings.FFLOGS_TIMEOUT,
                max_retry_after=settings.FFLOGS_MAX_RETRY_AFTER,
            )
        return cls(
            client=client,
            store=ZoneCacheStore(ttl=timedelta(hours=settings.CACHE_TTL_HOURS)),
            listings=ListingRepository(window=timedelta(minutes=settings.LISTING_WINDOW_MINUTES)),
            batch_size=settings.SYNC_BATCH_SIZE,
            rate_limit_seconds=settings.SYNC_RATE_LIMIT_SECONDS,
            interval_seconds=settings.SYNC_INTERVAL_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------ #
    def start(self) -> Optional[asyncio.Task]:
        """Spawn the background loop, or do nothing when FFLogs is not configured."""
        if not self.enabled:
            log.info("FFLogs client not configured, skipping background service.")
            return None
        if not self.running:
            self._task = asyncio.create_task(self.run_forever(), name="fflogs-sync")
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self.client is not None:
            await self.client.close()

    async def run_forever(self) -> None:
        log.info("Starting FFLogs background service...")
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Error in FFLogs background task")
            await asyncio.sleep(self.interval_seconds)

    # ------------------------------------------------------------------ #
    async def run_cycle(self) -> SyncReport:
        """Run one collect → group → skip fresh → fetch → persist pass."""
        report = SyncReport()
        self._api_calls = 0
        if self.client is None:
            return report

        try:
            listings = await asyncio.to_thread(self.listings.get_current_listings)
            kept = fflogs_listings(listings)
            member_ids = {cid for listing in kept for cid in roster_ids(listing)}
            players = await asyncio.to_thread(self.listings.resolve_players, member_ids)
        except SQLAlchemyError as e:
            log.error(f"[FFLogs] Could not collect listings: {e}")
            self.last_report = report
            return report

        groups = group_by_zone(kept, players)
        report.listings = len(kept)
        report.zones = len(groups)
        report.players = sum(len(g.players) for g in groups.values())
        log.info(f"[FFLogs] Found {report.listings} high-end listings, "
                 f"{report.players} unique players across {report.zones} zones")

        for group in groups.values():
            try:
                await self._sync_zone(group, report)
            except asyncio.CancelledError:
                raise
            except Exception:
                # Une zone en erreur n'empêche pas les suivantes
                report.failed_zones += 1
                log.exception(f"[FFLogs] Unexpected error while syncing {zone_name(group.zone_id)}")

        log.info(f"[FFLogs] Cycle complete: {report.batches} batches "
                 f"({report.failed_batches} failed), {report.parses} parses saved, "
                 f"{report.skipped} skipped (cached)")
        self.last_report = report
        return report

    async def _sync_zone(self, group: ZoneGroup, report: SyncReport) -> None:
        name = zone_name(group.zone_id)
        cached = await asyncio.to_thread(self.store.get, list(group.players), group.zone_id)

        now = utcnow()
        to_fetch = [
            player for content_id, player in sorted(group.players.items())
            if content_id not in cached or self.store.is_stale(cached[content_id], now)
        ]
        report.skipped += len(group.players) - len(to_fetch)
        if not to_fetch:
            return

        log.info(f"[FFLogs] {name} - {len(to_fetch)} players to fetch")
        partition = zone_partition(group.zone_id)

        for chunk in chunked(to_fetch, self.batch_size):
            if self._api_calls:
                await asyncio.sleep(self.rate_limit_seconds)
            self._api_calls += 1
            report.batches += 1

            try:
                results = await self.client.get_batch_zone_parses(
                    [(p.name, p.server, p.region) for p in chunk],
                    group.zone_id,
                    group.difficulty_id,
                    partition,
                )
            except FFLogsError as e:
                # Pas de cache négatif : ces joueurs seront retentés au prochain cycle
                report.failed_batches += 1
                log.warning(f"[FFLogs] Batch error for {name}: {e}")
                continue

            fetched_at = utcnow()
            for player, parses in zip(chunk, results):
                entry = ZoneCacheEntry(
                    content_id=player.content_id,
                    zone_id=group.zone_id,
                    fetched_at=fetched_at,
                    encounters=dict(parses or []),
                )
                if await asyncio.to_thread(self.store.put, entry):
                    report.saved += 1
                    report.parses += len(entry.encounters)
                else:
                    report.write_errors += 1
