# parse_cache.py – cache des parses FFLogs (SQLAlchemy)
# Une ligne par (content_id, zone_id). Jamais supprimée : la fraîcheur est
# calculée à la lecture (is_stale), les données ne sont qu'écrasées.

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Iterator, Optional

from sqlalchemy import Column, BigInteger, Integer, DateTime, JSON, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rpf.database import Base, SessionLocal, utcnow
from rpf.models.parses import ZoneCacheEntry

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


class ParseCache(Base):
    """Résultats FFLogs d'une zone pour un joueur. 1 ligne par content_id + zone_id."""
    __tablename__ = "parse_cache"
    content_id = Column(BigInteger, primary_key=True)
    zone_id    = Column(Integer, primary_key=True)
    fetched_at = Column(DateTime, nullable=False, index=True)
    encounters = Column(JSON, nullable=False, default=dict)  # {"101": {"percentile": 87.0, "job_id": 24}}

    def to_entry(self) -> ZoneCacheEntry:
        return ZoneCacheEntry(
            content_id=int(self.content_id),
            zone_id=int(self.zone_id),
            fetched_at=self.fetched_at,
            encounters=ZoneCacheEntry.encounters_from_json(self.encounters),
        )


def _readable(rows: Iterable[ParseCache]) -> Iterator[ZoneCacheEntry]:
    """Convert rows, skipping (and logging) the ones whose encounters JSON is corrupt."""
    for row in rows:
        try:
            yield row.to_entry()
        except (ValueError, TypeError, AttributeError) as e:
            log.error(f"parse_cache row {row.content_id}/zone {row.zone_id} is unreadable, ignored: {e!r}")


class ZoneCacheStore:
    """Batched reads and zone-level upserts over the parse_cache table."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 ttl: timedelta = DEFAULT_TTL):
        self.session_factory = session_factory
        self.ttl = ttl

    def get(self, player_ids: Iterable[int], zone_id: int) -> Dict[int, ZoneCacheEntry]:
        """
        Entries of one zone for many players, in a single query.

        Players without an entry are simply absent. A storage error is logged
        and reported as an empty result (everything becomes a cache miss).
        """
        ids = sorted({int(i) for i in player_ids})
        if not ids:
            return {}
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(ParseCache).where(
                        ParseCache.content_id.in_(ids),
                        ParseCache.zone_id == zone_id,
                    )
                ).scalars().all()
                return {e.content_id: e for e in _readable(rows)}
        except SQLAlchemyError as e:
            log.error(f"parse_cache read failed for zone {zone_id} ({len(ids)} players): {e}")
            return {}

    def get_all(self, player_ids: Iterable[int]) -> Dict[int, Dict[int, ZoneCacheEntry]]:
        """Every cached zone of the given players (render-time prefetch)."""
        ids = sorted({int(i) for i in player_ids})
        if not ids:
            return {}
        result: Dict[int, Dict[int, ZoneCacheEntry]] = {}
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(ParseCache).where(ParseCache.content_id.in_(ids))
                ).scalars().all()
                for e in _readable(rows):
                    result.setdefault(e.content_id, {})[e.zone_id] = e
        except SQLAlchemyError as e:
            log.error(f"parse_cache read failed for {len(ids)} players: {e}")
            return {}
        return result

    def put(self, entry: ZoneCacheEntry) -> bool:
        """
        Upsert the (player, zone) entry, replacing its whole encounter map.

        Other zones of the player are untouched. A write older than the stored
        fetched_at is ignored. Returns False when nothing was written.
        """
        try:
            with self.session_factory() as session:
                row = session.get(ParseCache, (entry.content_id, entry.zone_id))
                if row is None:
                    session.add(ParseCache(
                        content_id=entry.content_id,
                        zone_id=entry.zone_id,
                        fetched_at=entry.fetched_at,
                        encounters=entry.encounters_json(),
                    ))
                elif row.fetched_at is not None and row.fetched_at > entry.fetched_at:
                    log.debug(f"Skipping older write for {entry.content_id}/zone {entry.zone_id}")
                    return False
                else:
                    row.fetched_at = entry.fetched_at
                    row.encounters = entry.encounters_json()
                session.commit()
                return True
        except SQLAlchemyError as e:
            log.error(f"parse_cache write failed for {entry.content_id}/zone {entry.zone_id}: {e}")
            return False

    def is_stale(self, entry: ZoneCacheEntry, now: Optional[datetime] = None) -> bool:
        """True iff the entry was fetched more than ``ttl`` ago."""
        now = now or utcnow()
        return now - entry.fetched_at > self.ttl
