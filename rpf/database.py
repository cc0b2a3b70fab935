# database.py – SQLAlchemy setup + modèles Player / Listing

from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import (
    create_engine, Column, String, Integer, BigInteger, Boolean, DateTime, JSON
)
from sqlalchemy.orm import declarative_base, sessionmaker

from rpf.config import settings


# Si on utilise SQLite, créer le dossier parent du fichier .db
if settings.DB_URL.startswith("sqlite:///"):
    db_file = settings.DB_URL.replace("sqlite:///", "")
    if db_file and db_file != ":memory:":
        Path(db_file).parent.mkdir(parents=True, exist_ok=True)

# Engine & session
engine = create_engine(settings.DB_URL, future=True)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)

# Base pour les modèles
Base = declarative_base()


def utcnow() -> datetime:
    """Heure UTC naïve (SQLite ne conserve pas le fuseau)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Player(Base):
    """Joueur observé (annuaire alimenté par les uploads du plugin)."""
    __tablename__ = "players"
    content_id = Column(BigInteger, primary_key=True)
    name       = Column(String, nullable=False)
    home_world = Column(String, nullable=False)      # nom du serveur, ex. "Tonberry"
    last_seen  = Column(DateTime, default=utcnow, index=True)
    seen_count = Column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return f"<Player {self.content_id} {self.name}@{self.home_world}>"


class Listing(Base):
    """Annonce Party Finder telle que stockée par l'ingestion."""
    __tablename__ = "listings"
    listing_id        = Column(Integer, primary_key=True)
    duty_id           = Column(Integer, nullable=False, index=True)
    high_end          = Column(Boolean, default=False, nullable=False)
    private           = Column(Boolean, default=False, nullable=False)
    seconds_remaining = Column(Integer, default=0, nullable=False)
    leader_content_id = Column(BigInteger, default=0, nullable=False)
    member_content_ids = Column(JSON, default=list)  # 0 = slot vide
    created_at        = Column(DateTime, default=utcnow)
    updated_at        = Column(DateTime, default=utcnow, index=True)

    @property
    def member_ids(self) -> list[int]:
        """IDs des membres connus (slots vides exclus)."""
        return [int(i) for i in (self.member_content_ids or []) if i]


def init_db(bind=None):
    """Créer les tables si elles n'existent pas encore."""
    # Import local pour éviter le cycle d'import
    from rpf.db import parse_cache  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
