from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from unicodedata import normalize as _uni_norm, combining
from .models import Person


STATUSES = ("all", "alive", "deceased")
SORT_KEYS = ("name", "birthYear", "createdAt")


def _normalize_text(s: Optional[str], case_sensitive: bool = False) -> str:
    if not s:
        return ""
    # strip accents so 'Zoe' finds 'Zoë'
    nf = _uni_norm("NFKD", s)
    folded = "".join(c for c in nf if not combining(c))
    return folded if case_sensitive else folded.lower()


def _person_search_fields(p: Person) -> List[str]:
    return [v for v in (p.display_name, p.occupation, p.location) if v]


def search_people(all_persons: Iterable[Person], q: Optional[str], case_sensitive: bool = False) -> List[Person]:
    """Substring search over name, occupation and location.

    Search is opt-in: an empty or blank query matches nothing rather than
    listing everyone. Results keep the input order.
    """
    if not q or not q.strip():
        return []
    needle = _normalize_text(q.strip(), case_sensitive)
    if not needle:
        return []
    out = []
    for p in all_persons:
        if any(needle in _normalize_text(v, case_sensitive) for v in _person_search_fields(p)):
            out.append(p)
    return out


def filter_members(
    persons: Iterable[Person],
    status: str = "all",
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> List[Person]:
    """Members-list filters: living/deceased status and a birth-year window.

    A person without a birth year counts as year 0 for the lower bound and
    9999 for the upper bound, so they drop out of any bounded window.
    """
    if status not in STATUSES:
        raise ValueError(f"status must be one of {STATUSES}")
    out = []
    for p in persons:
        if status == "alive" and not p.effective_is_alive:
            continue
        if status == "deceased" and p.effective_is_alive:
            continue
        if min_year is not None and (p.birth_year or 0) < min_year:
            continue
        if max_year is not None and (p.birth_year if p.birth_year is not None else 9999) > max_year:
            continue
        out.append(p)
    return out


def sort_members(persons: Iterable[Person], sort_by: str = "name") -> List[Person]:
    if sort_by == "birthYear":
        return sorted(persons, key=lambda p: (p.birth_year is None, p.birth_year or 0, p.display_name.lower()))
    if sort_by == "createdAt":
        return sorted(persons, key=lambda p: p.created_at)
    return sorted(persons, key=lambda p: p.display_name.lower())


@dataclass
class FamilyStats:
    total: int
    alive: int
    deceased: int
    generations: int
    last_updated: Optional[datetime]


def family_stats(persons: Iterable[Person]) -> FamilyStats:
    """Dashboard counters.

    ``generations`` is approximated by the number of distinct birth years,
    with a floor of 1.
    """
    members = list(persons)
    alive = sum(1 for p in members if p.effective_is_alive)
    years = {p.birth_year for p in members if p.birth_year}
    last = max((p.updated_at for p in members), default=None)
    return FamilyStats(
        total=len(members),
        alive=alive,
        deceased=len(members) - alive,
        generations=len(years) or 1,
        last_updated=last,
    )


def recently_updated(persons: Iterable[Person], limit: int = 4) -> List[Person]:
    return sorted(persons, key=lambda p: p.updated_at, reverse=True)[:limit]
