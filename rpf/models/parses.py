# rpf/models/parses.py
# ============================================================================
# Types du cache de parses : une entrée par (joueur, zone), car FFLogs renvoie
# tous les boss d'une zone en un seul appel.
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

NO_LOG = -1.0  # aucun log qualifiant (≠ "jamais récupéré")


@dataclass(frozen=True)
class EncounterScore:
    """Meilleur percentile d'un joueur sur un boss."""
    __slots__ = ("percentile", "job_id")

    percentile: float
    job_id: Optional[int]

    @property
    def has_log(self) -> bool:
        return self.percentile >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {"percentile": self.percentile, "job_id": self.job_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncounterScore":
        job_id = data.get("job_id")
        return cls(
            percentile=float(data.get("percentile", NO_LOG)),
            job_id=int(job_id) if job_id else None,
        )


@dataclass
class ZoneCacheEntry:
    """Résultat complet d'une zone pour un joueur, à un instant donné."""
    content_id: int
    zone_id: int
    fetched_at: datetime
    encounters: Dict[int, EncounterScore] = field(default_factory=dict)

    def score(self, encounter_id: int) -> Optional[EncounterScore]:
        return self.encounters.get(encounter_id)

    def encounters_json(self) -> Dict[str, Dict[str, Any]]:
        """Forme stockée : clés str (JSON), valeurs dict."""
        return {str(enc_id): s.to_dict() for enc_id, s in self.encounters.items()}

    @staticmethod
    def encounters_from_json(raw: Optional[Dict[str, Any]]) -> Dict[int, EncounterScore]:
        return {int(k): EncounterScore.from_dict(v) for k, v in (raw or {}).items()}
