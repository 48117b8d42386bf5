"""Cross-provider driver matching.

The primary provider identifies drivers by slug ids (``max_verstappen``,
``hamilton``); the secondary provider only knows car numbers and names. The
two are joined on the normalized family name, with the given name used to
split drivers who share one. Family names shared across eras (two
Schumachers, two Verstappens) only resolve when the primary id carries the
given name, so a bare ``schumacher`` id against a session holding both is
reported as ambiguous rather than guessed.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable

from paddock.models.driver import DriverRef, SessionDriver

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Last-resort car numbers for recent grids, keyed by primary-provider driver id
STATIC_DRIVER_NUMBERS: dict[str, int] = {
    "max_verstappen": 1,
    "sargeant": 2,
    "ricciardo": 3,
    "norris": 4,
    "bortoleto": 5,
    "hadjar": 6,
    "doohan": 7,
    "gasly": 10,
    "perez": 11,
    "antonelli": 12,
    "alonso": 14,
    "leclerc": 16,
    "stroll": 18,
    "kevin_magnussen": 20,
    "tsunoda": 22,
    "albon": 23,
    "zhou": 24,
    "hulkenberg": 27,
    "lawson": 30,
    "ocon": 31,
    "colapinto": 43,
    "hamilton": 44,
    "sainz": 55,
    "russell": 63,
    "bottas": 77,
    "piastri": 81,
    "bearman": 87,
}


def normalize_name(name: str | None) -> str:
    """Lower-case, strip accents and drop everything but letters and digits."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", stripped.lower())


def split_driver_id(driver_id: str) -> tuple[str | None, str]:
    """Split a primary id into (given-name key, family-name key).

    ``max_verstappen`` -> ("max", "verstappen"); ``hamilton`` -> (None, "hamilton").
    Particles are not recognised: ``de_vries`` splits as ("de", "vries"), so
    callers also compare against the whole id.
    """
    parts = [p for p in driver_id.lower().split("_") if p]
    if not parts:
        return None, ""
    if len(parts) == 1:
        return None, normalize_name(parts[0])
    return normalize_name(parts[0]), normalize_name("".join(parts[1:]))


def family_name_key(driver_id: str) -> str:
    return split_driver_id(driver_id)[1]


def _driver_family(driver: SessionDriver) -> str:
    if driver.last_name:
        return normalize_name(driver.last_name)
    if driver.full_name:
        return normalize_name(driver.full_name.split()[-1])
    return ""


def match_driver_number(driver_id: str, drivers: Iterable[SessionDriver]) -> int | None:
    """Find the car number of ``driver_id`` among secondary-provider drivers.

    Returns None when nobody matches or the match stays ambiguous.
    """
    given, family = split_driver_id(driver_id)
    whole = normalize_name(driver_id)
    candidates: dict[int, SessionDriver] = {}
    for driver in drivers:
        if driver.driver_number is None:
            continue
        driver_family = _driver_family(driver)
        if driver_family and driver_family in (family, whole):
            candidates[driver.driver_number] = driver

    if len(candidates) > 1 and given:
        candidates = {
            number: d for number, d in candidates.items()
            if normalize_name(d.first_name).startswith(given)
        }
    if len(candidates) == 1:
        return next(iter(candidates))
    if len(candidates) > 1:
        logger.warning(
            "Ambiguous secondary-provider match for %s: numbers %s",
            driver_id, sorted(candidates),
        )
    return None


def match_driver_id(
    driver_number: int, drivers: Iterable[SessionDriver], entries: Iterable[DriverRef],
) -> str | None:
    """Primary-provider id for a car number, by way of the session entry list.

    The session driver carrying ``driver_number`` is matched to ``entries`` on
    family name, then given name when the family name is shared.
    """
    session_driver = next((d for d in drivers if d.driver_number == driver_number), None)
    if session_driver is None:
        return None
    family = _driver_family(session_driver)
    if not family:
        return None
    candidates = [e for e in entries if normalize_name(e.family_name) == family]
    if len(candidates) > 1:
        given = normalize_name(session_driver.first_name)
        candidates = [e for e in candidates if normalize_name(e.given_name) == given]
    if len(candidates) == 1:
        return candidates[0].driver_id
    if candidates:
        logger.warning(
            "Ambiguous primary-provider match for car %s: %s",
            driver_number, sorted(e.driver_id for e in candidates),
        )
    return None


def static_driver_number(driver_id: str) -> int | None:
    """Look up the built-in table by id, then by family name."""
    number = STATIC_DRIVER_NUMBERS.get(driver_id.lower())
    if number is not None:
        return number
    family = family_name_key(driver_id)
    matches = {
        n for key, n in STATIC_DRIVER_NUMBERS.items() if family_name_key(key) == family
    }
    return matches.pop() if len(matches) == 1 else None
