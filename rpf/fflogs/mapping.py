# fflogs/mapping.py
# ============================================================================
# Duty ID FFXIV → Zone / Encounter FFLogs
# Seul le contenu haut niveau (Savage, Ultimate, Extreme) est mappé : tout
# autre duty ne génère aucun appel FFLogs.
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

SAVAGE = 101
NORMAL = 100  # Normal / Extreme / Ultimate


@dataclass(frozen=True)
class FFLogsEncounter:
    """Un boss FFLogs rattaché à un duty FFXIV."""
    zone_id: int
    encounter_id: int
    difficulty_id: Optional[int]
    name: str
    secondary_encounter_id: Optional[int] = None  # boss en deux phases (P1/P2)


@dataclass(frozen=True)
class FFLogsZone:
    name: str
    partition: Optional[int] = None


def _sav(zone: int, enc: int, name: str, secondary: Optional[int] = None) -> FFLogsEncounter:
    return FFLogsEncounter(zone, enc, SAVAGE, name, secondary)


def _ult(zone: int, enc: int, name: str) -> FFLogsEncounter:
    return FFLogsEncounter(zone, enc, NORMAL, name)


_ext = _ult

DUTY_TO_FFLOGS: Mapping[int, FFLogsEncounter] = MappingProxyType({
    # — Dawntrail 7.4 : AAC Heavyweight (Savage), M9S-M12S, zone 73
    1069: _sav(73, 101, "AAC Heavyweight M1 (Savage)"),
    1071: _sav(73, 102, "AAC Heavyweight M2 (Savage)"),
    1073: _sav(73, 103, "AAC Heavyweight M3 (Savage)"),
    1075: _sav(73, 104, "AAC Heavyweight M4 (Savage)", secondary=105),

    # — Dawntrail 7.4 : Extreme, zone 72
    1077: _ext(72, 1083, "Hell on Rails (Extreme)"),

    # — Ultimates (legacy), zone 59, FRU en zone 65
    280: _ult(59, 1073, "The Unending Coil of Bahamut (Ultimate)"),
    539: _ult(59, 1074, "The Weapon's Refrain (Ultimate)"),
    694: _ult(59, 1075, "The Epic of Alexander (Ultimate)"),
    788: _ult(59, 1076, "Dragonsong's Reprise (Ultimate)"),
    908: _ult(59, 1077, "The Omega Protocol (Ultimate)"),
    1006: _ult(65, 1079, "Futures Rewritten (Ultimate)"),
})

FFLOGS_ZONES: Mapping[int, FFLogsZone] = MappingProxyType({
    73: FFLogsZone("AAC Heavyweight (Savage)", partition=1),
    72: FFLogsZone("Trials III (Extreme)", partition=1),
    68: FFLogsZone("AAC Cruiserweight (Savage)", partition=1),
    65: FFLogsZone("Futures Rewritten (Ultimate)", partition=1),
    62: FFLogsZone("AAC Light-heavyweight (Savage)", partition=1),
    59: FFLogsZone("Ultimates (Legacy)", partition=1),
})


def get_fflogs_encounter(duty_id: int) -> Optional[FFLogsEncounter]:
    """Encounter FFLogs pour un duty, ou None s'il n'est pas classé."""
    return DUTY_TO_FFLOGS.get(duty_id)


def is_fflogs_supported(duty_id: int) -> bool:
    return duty_id in DUTY_TO_FFLOGS


def zone_name(zone_id: int) -> str:
    zone = FFLOGS_ZONES.get(zone_id)
    return zone.name if zone else "Unknown Zone"


def zone_partition(zone_id: int) -> Optional[int]:
    zone = FFLOGS_ZONES.get(zone_id)
    return zone.partition if zone else None


# ─── Serveurs → région FFLogs ────────────────────────────────────────────────
_REGION_SERVERS: Dict[str, tuple[str, ...]] = {
    "JP": (
        # Elemental
        "Aegis", "Atomos", "Carbuncle", "Garuda", "Gungnir", "Kujata", "Tonberry", "Typhon",
        # Gaia
        "Alexander", "Bahamut", "Durandal", "Fenrir", "Ifrit", "Ridill", "Tiamat", "Ultima",
        # Mana
        "Anima", "Asura", "Chocobo", "Hades", "Ixion", "Masamune", "Pandaemonium", "Titan",
        # Meteor
        "Belias", "Mandragora", "Ramuh", "Shinryu", "Unicorn", "Valefor", "Yojimbo", "Zeromus",
    ),
    "NA": (
        # Aether
        "Adamantoise", "Cactuar", "Faerie", "Gilgamesh", "Jenova", "Midgardsormr", "Sargatanas", "Siren",
        # Primal
        "Behemoth", "Excalibur", "Exodus", "Famfrit", "Hyperion", "Lamia", "Leviathan", "Ultros",
        # Crystal
        "Balmung", "Brynhildr", "Coeurl", "Diabolos", "Goblin", "Malboro", "Mateus", "Zalera",
        # Dynamis
        "Halicarnassus", "Maduin", "Marilith", "Seraph", "Cuchulainn", "Golem", "Kraken", "Rafflesia",
    ),
    "EU": (
        # Chaos
        "Cerberus", "Louisoix", "Moogle", "Omega", "Phantom", "Ragnarok", "Sagittarius", "Spriggan",
        # Light
        "Alpha", "Lich", "Odin", "Phoenix", "Raiden", "Shiva", "Twintania", "Zodiark",
    ),
    "OC": ("Bismarck", "Ravana", "Sephirot", "Sophia", "Zurvan"),
}

SERVER_REGIONS: Mapping[str, str] = MappingProxyType({
    server.lower(): region
    for region, servers in _REGION_SERVERS.items()
    for server in servers
})

DEFAULT_REGION = "NA"


def region_from_server(server: str) -> str:
    """Région FFLogs d'un serveur (insensible à la casse, NA par défaut)."""
    return SERVER_REGIONS.get(server.strip().lower(), DEFAULT_REGION)


# ─── Specs FFLogs → job ID FFXIV ─────────────────────────────────────────────
JOB_IDS: Mapping[str, int] = MappingProxyType({
    "Paladin": 19, "Monk": 20, "Warrior": 21, "Dragoon": 22, "Bard": 23,
    "WhiteMage": 24, "BlackMage": 25, "Summoner": 27, "Scholar": 28,
    "Ninja": 30, "Machinist": 31, "DarkKnight": 32, "Astrologian": 33,
    "Samurai": 34, "RedMage": 35, "Gunbreaker": 37, "Dancer": 38,
    "Reaper": 39, "Sage": 40, "Viper": 41, "Pictomancer": 42,
})
