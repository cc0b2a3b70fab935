"""Shared fixtures: in-memory database, store, repositories and HTTP mocks."""

import os

# Avant tout import de rpf : pas de fichier SQLite ni d'identifiants réels
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("FFLOGS_CLIENT_ID", "")
os.environ.setdefault("FFLOGS_CLIENT_SECRET", "")

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rpf.database import Listing, Player, init_db, utcnow
from rpf.db.parse_cache import ZoneCacheStore
from rpf.listings import ListingRepository


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def store(session_factory):
    return ZoneCacheStore(session_factory)


@pytest.fixture
def repo(session_factory):
    return ListingRepository(session_factory, window=timedelta(hours=1))


@pytest.fixture
def add_player(session_factory):
    def _add(content_id, name="Alpha Tester", home_world="Tonberry"):
        with session_factory() as session:
            session.add(Player(content_id=content_id, name=name, home_world=home_world))
            session.commit()
    return _add


@pytest.fixture
def add_listing(session_factory):
    def _add(listing_id, duty_id=1069, members=(), leader=0, high_end=True,
             private=False, seconds_remaining=3000, updated_ago=timedelta(minutes=1)):
        with session_factory() as session:
            session.add(Listing(
                listing_id=listing_id,
                duty_id=duty_id,
                high_end=high_end,
                private=private,
                seconds_remaining=seconds_remaining,
                leader_content_id=leader,
                member_content_ids=list(members),
                updated_at=utcnow() - updated_ago,
            ))
            session.commit()
    return _add


def make_response(status=200, json_data=None, text="", headers=None, json_error=None):
    """aiohttp-like response usable with ``async with session.post(...)``."""
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    if json_error is not None:
        resp.json = AsyncMock(side_effect=json_error)
    else:
        resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__.return_value = resp
    resp.__aexit__.return_value = None
    return resp


def make_session(*responses):
    session = MagicMock()
    session.closed = False
    session.post = MagicMock(side_effect=list(responses))
    return session
