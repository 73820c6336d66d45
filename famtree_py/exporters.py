"""Export and import of the family map.

Formats:
- ``json``: the persisted ``{id: person}`` map, pretty printed.
- ``csv``: one row per person with the columns in ``CSV_HEADERS``.
- ``gedcom``: a small GEDCOM 5.5.1 file with INDI records for persons and FAM
  records derived from spouse and children links.

``merge_json`` is the only importer; it upserts records by id.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import csv
import io
import json
import logging

from .fs import atomic_write_text
from .models import Person
from .store import PersonStore

FORMATS = ("json", "csv", "gedcom")

CSV_HEADERS = ["ID", "Name", "Birth Year", "Death Year", "Gender", "Occupation", "Location"]

MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "gedcom": "text/plain",
}

EXTENSIONS = {"json": "json", "csv": "csv", "gedcom": "ged"}


class ImportFormatError(ValueError):
    """The import payload is not a JSON person map or list."""


def to_json(store: PersonStore) -> str:
    return json.dumps(store.to_map(), ensure_ascii=False, indent=2)


def to_csv(store: PersonStore) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(CSV_HEADERS)
    for p in store.list():
        w.writerow([
            p.id,
            p.display_name,
            p.birth_year or "",
            p.death_year or "",
            p.gender or "",
            p.occupation or "",
            p.location or "",
        ])
    return buf.getvalue()


def _gedcom_name(p: Person) -> str:
    given = " ".join(x for x in (p.first_name, p.middle_name or "") if x).strip()
    surname = p.last_name
    if not given and not surname:
        parts = p.display_name.split()
        if len(parts) > 1:
            given, surname = " ".join(parts[:-1]), parts[-1]
        else:
            given = p.display_name
    return f"{given} /{surname}/".strip()


def _date_value(date_text: Optional[str], year: Optional[int]) -> Optional[str]:
    return date_text or (str(year) if year else None)


def _families(store: PersonStore) -> List[Tuple[List[str], List[str]]]:
    """(partners, children) per couple or single parent, in store order."""
    seen = set()
    out = []
    for p in store.list():
        if p.id in seen:
            continue
        spouse = store.get(p.spouse_id) if p.spouse_id != p.id else None
        partners = [p.id]
        if spouse is not None:
            partners.append(spouse.id)
        children: List[str] = []
        for member in [p] + ([spouse] if spouse else []):
            for cid in member.children:
                if cid in store and cid not in children and cid not in partners:
                    children.append(cid)
        if spouse is None and not children:
            continue
        seen.update(partners)
        out.append((partners, children))
    return out


def to_gedcom(store: PersonStore) -> str:
    xref = {p.id: f"I{n}" for n, p in enumerate(store.list(), start=1)}
    lines: List[str] = [
        "0 HEAD",
        "1 SOUR famtree-py",
        "1 GEDC",
        "2 VERS 5.5.1",
        "2 FORM LINEAGE-LINKED",
        "1 CHAR UTF-8",
    ]
    for p in store.list():
        lines.append(f"0 @{xref[p.id]}@ INDI")
        lines.append(f"1 NAME {_gedcom_name(p)}")
        if p.gender in ("male", "female"):
            lines.append(f"1 SEX {'M' if p.gender == 'male' else 'F'}")
        birth = _date_value(p.birth_date, p.birth_year)
        if birth:
            lines.append("1 BIRT")
            lines.append(f"2 DATE {birth}")
        death = _date_value(p.death_date, p.death_year)
        if death:
            lines.append("1 DEAT")
            lines.append(f"2 DATE {death}")
        if p.occupation:
            lines.append(f"1 OCCU {p.occupation}")
        if p.location:
            lines.append("1 RESI")
            lines.append(f"2 PLAC {p.location}")
        lines.append(f"1 REFN {p.id}")
    for n, (partners, children) in enumerate(_families(store), start=1):
        lines.append(f"0 @F{n}@ FAM")
        slots: Dict[str, str] = {}
        for pid in partners:
            want = "WIFE" if store.get(pid).gender == "female" else "HUSB"
            if want in slots:
                want = "WIFE" if want == "HUSB" else "HUSB"
            slots[want] = pid
        for tag in ("HUSB", "WIFE"):
            if tag in slots:
                lines.append(f"1 {tag} @{xref[slots[tag]]}@")
        for cid in children:
            lines.append(f"1 CHIL @{xref[cid]}@")
    lines.append("0 TRLR")
    return "\n".join(lines) + "\n"


def export_text(store: PersonStore, fmt: str) -> str:
    if fmt == "json":
        return to_json(store)
    if fmt == "csv":
        return to_csv(store)
    if fmt == "gedcom":
        return to_gedcom(store)
    raise ValueError(f"unknown export format {fmt!r}; expected one of {', '.join(FORMATS)}")


def write_export(store: PersonStore, fmt: str, out_path: str | Path) -> Path:
    out = Path(out_path)
    atomic_write_text(out, export_text(store, fmt))
    logging.info("Exported %d persons as %s to %s", len(store), fmt, out)
    return out


@dataclass
class MergeResult:
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.added) + len(self.updated)

    def to_dict(self) -> Dict[str, Any]:
        return {"added": len(self.added), "updated": len(self.updated), "skipped": self.skipped}


def merge_json(store: PersonStore, text: str) -> MergeResult:
    """Upsert the persons of a JSON export into ``store``."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ImportFormatError(f"invalid JSON: {exc}") from exc
    return merge_data(store, data)


def merge_data(store: PersonStore, data: Any) -> MergeResult:
    """Upsert already-parsed export data.

    Accepts the ``{id: person}`` map written by ``to_json`` or a plain list of
    person objects. Merged records get a fresh ``updated_at``; everything
    else is kept as given.
    """
    if isinstance(data, dict):
        items = []
        for key, raw in data.items():
            if isinstance(raw, dict):
                raw = dict(raw)
                raw.setdefault("id", key)
            items.append(raw)
    elif isinstance(data, list):
        items = data
    else:
        raise ImportFormatError("expected a JSON object keyed by id or a list of persons")

    result = MergeResult()
    for raw in items:
        if not isinstance(raw, dict):
            result.skipped += 1
            continue
        person = Person.from_dict(raw)
        person.touch()
        if person.id in store:
            result.updated.append(person.id)
        else:
            result.added.append(person.id)
        store.put(person)
    if result.skipped:
        logging.warning("Import skipped %d malformed entries", result.skipped)
    logging.info("Imported %d new and %d updated persons", len(result.added), len(result.updated))
    return result
