"""Constructor identity: alias canonicalization plus colour and logo lookups."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

DEFAULT_TEAM_COLOR = "#6B7280"

TEAM_COLORS: dict[str, str] = {
    "red_bull": "#4781D7",
    "mercedes": "#27F2CD",
    "ferrari": "#ED1131",
    "mclaren": "#F47600",
    "aston_martin": "#00594F",
    "alpine": "#F282B4",
    "williams": "#1868DB",
    "haas": "#9C9FA2",
    "rb": "#6C98FF",
    "sauber": "#01C00E",
    "kick_sauber": "#01C00E",
    "alfa_romeo": "#900000",
    "alphatauri": "#2B4562",
    "renault": "#FFED00",
    "toro_rosso": "#00327D",
}

# Slugs used by the official media CDN for team logos
_LOGO_SLUGS: dict[str, str] = {
    "red_bull": "redbullracing",
    "mercedes": "mercedes",
    "ferrari": "ferrari",
    "mclaren": "mclaren",
    "aston_martin": "astonmartin",
    "alpine": "alpine",
    "williams": "williams",
    "haas": "haas",
    "rb": "racingbulls",
    "sauber": "kicksauber",
    "kick_sauber": "kicksauber",
}
_LOGO_URL = (
    "https://media.formula1.com/image/upload/c_lfill,w_{width}/q_auto/"
    "common/f1/2025/{slug}/2025{slug}logo.webp"
)

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")

TEAM_ALIASES: dict[str, str] = {}


def _variants(value: str) -> tuple[str, str, str]:
    lowered = value.strip().lower()
    return (
        lowered,
        _NON_ALNUM_RUN.sub("_", lowered).strip("_"),
        _NON_ALNUM.sub("", lowered),
    )


def register_aliases(canonical_id: str, aliases: Iterable[str]) -> None:
    """Map every lowered, underscored and compact form of each alias to ``canonical_id``."""
    for alias in (canonical_id, *aliases):
        for variant in _variants(alias):
            if variant:
                TEAM_ALIASES[variant] = canonical_id


register_aliases("red_bull", [
    "oracle red bull racing", "red bull racing", "red bull", "redbull",
])
register_aliases("rb", [
    "visa cash app rb formula one team", "visa cash app rb", "visa cash app rb f1 team",
    "rb formula one team", "rb f1 team", "rb f1", "racing bulls", "racingbulls", "visa rb",
    "vcarb",
])
register_aliases("ferrari", ["scuderia ferrari", "scuderia ferrari hp", "scuderia"])
register_aliases("mercedes", [
    "mercedes-amg petronas formula one team", "mercedes amg petronas", "mercedes-amg",
    "mercedes benz", "mercedes-benz",
])
register_aliases("mclaren", ["mclaren formula 1 team", "mclaren f1 team", "mclaren racing"])
register_aliases("aston_martin", [
    "aston martin aramco cognizant formula one team", "aston martin aramco",
    "aston martin f1 team", "aston martin",
])
register_aliases("alpine", ["bwt alpine f1 team", "alpine f1 team", "alpine renault"])
register_aliases("williams", ["williams racing", "williams grand prix engineering"])
register_aliases("haas", ["moneygram haas f1 team", "haas f1 team", "haas formula 1 team"])
register_aliases("kick_sauber", [
    "stake f1 team kick sauber", "stake f1 team", "kick sauber", "kick sauber f1 team",
])
register_aliases("sauber", ["sauber f1 team", "sauber formula 1 team"])
register_aliases("alphatauri", [
    "alpha tauri", "scuderia alphatauri", "scuderia alphatauri honda", "alphatauri honda",
])
register_aliases("toro_rosso", ["toro rosso", "scuderia toro rosso"])
register_aliases("alfa_romeo", ["alfa romeo", "alfa romeo racing", "alfa romeo f1 team stake", "alfa"])
register_aliases("renault", ["renault f1 team", "renault sport formula one team"])

_CANDIDATE_KEYS = ("constructorId", "constructor_id", "teamId", "name", "teamName", "team_name")


def canonical_team_id(team: Any) -> str | None:
    """Resolve a team name, id, ``ConstructorRef`` or mapping to its canonical id.

    Returns None when nothing in the alias table matches.
    """
    if team is None:
        return None
    if isinstance(team, Mapping):
        nested = team.get("Constructor") or team.get("constructor")
        candidates = [team.get(key) for key in _CANDIDATE_KEYS]
        if nested is not None:
            candidates.append(nested)
        return _first_match(candidates)
    if not isinstance(team, str):
        return _first_match(
            [getattr(team, "constructor_id", None), getattr(team, "name", None)]
        )

    for variant in _variants(team):
        if variant in TEAM_ALIASES:
            return TEAM_ALIASES[variant]
    return None


def _first_match(candidates: Iterable[Any]) -> str | None:
    for candidate in candidates:
        if candidate is None:
            continue
        resolved = canonical_team_id(candidate)
        if resolved:
            return resolved
    return None


def team_color(team: Any, fallback: str = DEFAULT_TEAM_COLOR) -> str:
    """Return the team's hex colour, or ``fallback`` for unknown teams."""
    canonical = canonical_team_id(team)
    return TEAM_COLORS.get(canonical, fallback) if canonical else fallback


def team_logo_url(team: Any, width: int = 96) -> str | None:
    canonical = canonical_team_id(team)
    slug = _LOGO_SLUGS.get(canonical) if canonical else None
    if slug is None:
        return None
    return _LOGO_URL.format(width=width, slug=slug)
