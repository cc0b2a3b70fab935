# listings.py – lecture des annonces actives et de l'annuaire des joueurs

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from rpf.database import Listing, Player, SessionLocal, utcnow

log = logging.getLogger(__name__)


class ListingRepository:
    """Read side of the listing and player collections."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 window: timedelta = timedelta(hours=1)):
        self.session_factory = session_factory
        self.window = window

    def get_current_listings(self) -> List[Listing]:
        """
        Public listings updated within the window whose timer has not run out.

        Returned objects are detached from their session (read-only use).
        """
        now = utcnow()
        with self.session_factory() as session:
            rows = session.execute(
                select(Listing).where(
                    Listing.updated_at >= now - self.window,
                    Listing.private.is_(False),
                ).order_by(Listing.listing_id)
            ).scalars().all()
            session.expunge_all()

        # time_left = secondes restantes au moment de l'upload - temps écoulé depuis
        return [
            row for row in rows
            if row.seconds_remaining - (now - row.updated_at).total_seconds() >= 0
        ]

    def resolve_players(self, content_ids: Iterable[int]) -> Dict[int, Player]:
        """Players by content id; unknown ids are silently omitted."""
        ids = sorted({int(i) for i in content_ids if i})
        if not ids:
            return {}
        with self.session_factory() as session:
            rows = session.execute(
                select(Player).where(Player.content_id.in_(ids))
            ).scalars().all()
            session.expunge_all()
        return {int(p.content_id): p for p in rows}
