from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from typing import List, Optional, Dict, Any
import re
import uuid


GENDERS = ("male", "female", "other")
EVENT_TYPES = ("birthday", "anniversary", "wedding", "death", "graduation", "other")
DOCUMENT_TYPES = ("photo", "certificate", "story", "document", "other")

PLACEHOLDER_IMAGE = "/api/placeholder/100/100"


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts_to_str(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _ts_from_any(v: Any) -> datetime:
    if isinstance(v, datetime):
        return v
    if isinstance(v, str) and v:
        try:
            # accept the trailing 'Z' JavaScript's toISOString() produces
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            pass
    return utcnow()


def _opt_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


_MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}


def year_from_date(s: Optional[str]) -> Optional[int]:
    """Extract the year of a date string.

    Understands ISO dates (``1990``, ``1990-05``, ``1990-05-03``), GEDCOM-ish
    forms (``12 JAN 1900``, ``ABT 1900``) and otherwise falls back to the
    first 3-4 digit number in the text.
    """
    if not s:
        return None
    txt = s.strip().upper()
    if not txt:
        return None
    m = re.match(r"^(\d{3,4})(?:-(\d{1,2})(?:-(\d{1,2}))?)?(?:T.*)?$", txt)
    if m:
        return int(m.group(1))
    m = re.match(r"^(?:(\d{1,2})\s+)?([A-Z]{3,9})\.?,?\s+(\d{3,4})$", txt)
    if m and m.group(2)[:3] in _MONTHS:
        return int(m.group(3))
    m = re.search(r"(\d{3,4})", txt)
    if m:
        return int(m.group(1))
    return None


@dataclass
class Person:
    id: str = field(default_factory=_new_id)
    name: str = ""
    first_name: str = ""
    middle_name: Optional[str] = None
    last_name: str = ""
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    marital_status: Optional[str] = None
    spouse_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)
    birth_date: Optional[str] = None
    birth_year: Optional[int] = None
    death_date: Optional[str] = None
    death_year: Optional[int] = None
    image: Optional[str] = None
    # 'male', 'female', 'other' or None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    is_alive: Optional[bool] = None
    biography: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.compose_name()
        if self.birth_year is None and self.birth_date:
            self.birth_year = year_from_date(self.birth_date)
        if self.death_year is None and self.death_date:
            self.death_year = year_from_date(self.death_date)

    def compose_name(self) -> str:
        parts = [self.first_name, self.middle_name or "", self.last_name]
        return " ".join(p.strip() for p in parts if p and p.strip())

    @property
    def display_name(self) -> str:
        return self.name or self.compose_name()

    @property
    def surname_key(self) -> str:
        # last token of the display name, which is what the cards compare
        parts = self.display_name.strip().split()
        return parts[-1].lower() if parts else ""

    @property
    def effective_is_alive(self) -> bool:
        if self.is_alive is not None:
            return self.is_alive
        return not self.death_year

    @property
    def birth_label(self) -> Optional[str]:
        if self.birth_date:
            return self.birth_date
        return f"b. {self.birth_year}" if self.birth_year else None

    @property
    def death_label(self) -> Optional[str]:
        if self.death_date:
            return self.death_date
        return f"d. {self.death_year}" if self.death_year else None

    @property
    def image_url(self) -> str:
        return self.image or PLACEHOLDER_IMAGE

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "firstName": self.first_name,
            "middleName": self.middle_name,
            "lastName": self.last_name,
            "fatherName": self.father_name,
            "motherName": self.mother_name,
            "maritalStatus": self.marital_status,
            "spouseId": self.spouse_id,
            "children": list(self.children),
            "parents": list(self.parents) if self.parents else None,
            "birthDate": self.birth_date,
            "birthYear": self.birth_year,
            "deathDate": self.death_date,
            "deathYear": self.death_year,
            "image": self.image,
            "gender": self.gender,
            "occupation": self.occupation,
            "location": self.location,
            "isAlive": self.is_alive,
            "biography": self.biography,
            "notes": self.notes,
            "tags": list(self.tags) if self.tags else None,
            "createdAt": _ts_to_str(self.created_at),
            "updatedAt": _ts_to_str(self.updated_at),
        }
        # optional fields are omitted rather than written as null
        return {k: v for k, v in d.items() if v is not None}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Person":
        birth_date = d.get("birthDate") or None
        death_date = d.get("deathDate") or None
        birth_year = _opt_int(d.get("birthYear"))
        death_year = _opt_int(d.get("deathYear"))
        if birth_year is None and birth_date:
            birth_year = year_from_date(birth_date)
        if death_year is None and death_date:
            death_year = year_from_date(death_date)
        alive = d.get("isAlive")
        return Person(
            id=str(d.get("id") or _new_id()),
            name=d.get("name") or "",
            first_name=d.get("firstName") or "",
            middle_name=d.get("middleName") or None,
            last_name=d.get("lastName") or "",
            father_name=d.get("fatherName") or None,
            mother_name=d.get("motherName") or None,
            marital_status=d.get("maritalStatus") or None,
            spouse_id=d.get("spouseId") or None,
            children=[str(c) for c in d.get("children") or []],
            parents=[str(p) for p in d.get("parents") or []],
            birth_date=birth_date,
            birth_year=birth_year,
            death_date=death_date,
            death_year=death_year,
            image=d.get("image") or None,
            gender=d.get("gender") if d.get("gender") in GENDERS else None,
            occupation=d.get("occupation") or None,
            location=d.get("location") or None,
            is_alive=alive if isinstance(alive, bool) else None,
            biography=d.get("biography") or None,
            notes=d.get("notes") or None,
            tags=list(d.get("tags") or []),
            created_at=_ts_from_any(d.get("createdAt")),
            updated_at=_ts_from_any(d.get("updatedAt")),
        )


@dataclass
class FamilyEvent:
    id: str = field(default_factory=_new_id)
    title: str = ""
    date: str = ""
    type: str = "other"
    description: Optional[str] = None
    person_ids: List[str] = field(default_factory=list)
    location: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)
    is_recurring: bool = False
    reminder_days: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def sort_key(self) -> date:
        """Chronological key; undated or unparsable events sort last."""
        try:
            return date.fromisoformat(self.date[:10])
        except (TypeError, ValueError):
            year = year_from_date(self.date)
            return date(year, 1, 1) if year else date.max

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "type": self.type,
            "description": self.description,
            "personIds": list(self.person_ids),
            "location": self.location,
            "photos": list(self.photos),
            "documents": list(self.documents),
            "isRecurring": self.is_recurring,
            "reminderDays": self.reminder_days,
            "createdAt": _ts_to_str(self.created_at),
            "updatedAt": _ts_to_str(self.updated_at),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FamilyEvent":
        kind = d.get("type", "other")
        return FamilyEvent(
            id=str(d.get("id") or _new_id()),
            title=d.get("title", ""),
            date=d.get("date", ""),
            type=kind if kind in EVENT_TYPES else "other",
            description=d.get("description"),
            person_ids=list(d.get("personIds") or []),
            location=d.get("location"),
            photos=list(d.get("photos") or []),
            documents=list(d.get("documents") or []),
            is_recurring=bool(d.get("isRecurring", False)),
            reminder_days=_opt_int(d.get("reminderDays")),
            created_at=_ts_from_any(d.get("createdAt")),
            updated_at=_ts_from_any(d.get("updatedAt")),
        )


@dataclass
class FamilyDocument:
    id: str = field(default_factory=_new_id)
    title: str = ""
    file_url: str = ""
    file_name: str = ""
    file_size: int = 0
    mime_type: str = "application/octet-stream"
    type: str = "document"
    description: Optional[str] = None
    person_ids: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    is_public: bool = True
    uploaded_by: str = "local"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def size_label(self) -> str:
        return f"{self.file_size / 1024:.1f} KB"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
            "type": self.type,
            "description": self.description,
            "personIds": list(self.person_ids),
            "tags": list(self.tags),
            "isPublic": self.is_public,
            "uploadedBy": self.uploaded_by,
            "createdAt": _ts_to_str(self.created_at),
            "updatedAt": _ts_to_str(self.updated_at),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FamilyDocument":
        kind = d.get("type", "document")
        return FamilyDocument(
            id=str(d.get("id") or _new_id()),
            title=d.get("title", ""),
            file_url=d.get("fileUrl", ""),
            file_name=d.get("fileName", ""),
            file_size=_opt_int(d.get("fileSize")) or 0,
            mime_type=d.get("mimeType") or "application/octet-stream",
            type=kind if kind in DOCUMENT_TYPES else "other",
            description=d.get("description"),
            person_ids=list(d.get("personIds") or []),
            tags=list(d.get("tags") or []),
            is_public=bool(d.get("isPublic", True)),
            uploaded_by=d.get("uploadedBy", "local"),
            created_at=_ts_from_any(d.get("createdAt")),
            updated_at=_ts_from_any(d.get("updatedAt")),
        )


def calculate_age(birth_year: Optional[int], death_year: Optional[int] = None, today: Optional[date] = None) -> Optional[int]:
    if not birth_year:
        return None
    end = death_year or (today or date.today()).year
    return end - birth_year


def life_status(p: Person, today: Optional[date] = None) -> str:
    if p.effective_is_alive:
        age = calculate_age(p.birth_year, today=today)
        return f"{age} years old" if age else "Age unknown"
    age = calculate_age(p.birth_year, p.death_year, today=today)
    return f"Died at {age} ({p.death_year})" if age else f"Died in {p.death_year}"


def relationship_text(p: Person, parent_name: Optional[str]) -> str:
    if not parent_name:
        return ""
    if p.gender == "male":
        return f"Son of {parent_name}"
    if p.gender == "female":
        return f"Daughter of {parent_name}"
    return f"Child of {parent_name}"


def spouse_relationship_text(p: Person, spouse: Person) -> str:
    if p.gender == "male":
        return f"Husband of {spouse.display_name}"
    if p.gender == "female":
        return f"Wife of {spouse.display_name}"
    return f"Spouse of {spouse.display_name}"
