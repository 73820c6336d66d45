"""In-memory person store plus the JSON-file collaborator that persists it.

``PersonStore`` is the single owner of Person, FamilyEvent and FamilyDocument
records. It is created once at application start and handed to whoever needs
it (web app, CLI, interaction controller); nothing looks it up globally.

``JsonFileStore`` reads and writes the persisted family map (a JSON object
keyed by person id) wholesale. Its failures surface as
``famtree_py.fs.PersistenceError``.
"""
from __future__ import annotations
from dataclasses import fields as dc_fields
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from .fs import json_load_map, json_save_map, ensure_json_file
from .models import Person, FamilyEvent, FamilyDocument, utcnow, _opt_int
from .normalizer import remove_references, unlink_person, link_spouses
from .search import search_people

Listener = Callable[[str, str], None]

_PERSON_FIELDS = {f.name for f in dc_fields(Person)}
_IMMUTABLE = {"id", "created_at"}


def _normalized_name(p: Person) -> str:
    return (p.display_name or "").strip().lower()


class PersonStore:
    def __init__(self, persons: Optional[Iterable[Person]] = None) -> None:
        self.persons: Dict[str, Person] = {}
        self.events: Dict[str, FamilyEvent] = {}
        self.documents: Dict[str, FamilyDocument] = {}
        self._listeners: List[Listener] = []
        for p in persons or []:
            self.persons[p.id] = p

    # --- change notification ---
    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, action: str, record_id: str) -> None:
        for listener in list(self._listeners):
            listener(action, record_id)

    # --- person read access ---
    def get(self, pid: Optional[str]) -> Optional[Person]:
        if not pid:
            return None
        return self.persons.get(pid)

    def list(self) -> List[Person]:
        return list(self.persons.values())

    def snapshot(self) -> Dict[str, Person]:
        return dict(self.persons)

    def __len__(self) -> int:
        return len(self.persons)

    def __contains__(self, pid: object) -> bool:
        return pid in self.persons

    def search(self, query: Optional[str], case_sensitive: bool = False) -> List[Person]:
        return search_people(self.persons.values(), query, case_sensitive=case_sensitive)

    # --- person mutations ---
    def find_duplicate(self, person: Person) -> Optional[Person]:
        """Existing record with the same normalized name and birth year.

        Both birth years must be present; a missing year never matches.
        """
        if not person.birth_year:
            return None
        name = _normalized_name(person)
        for other in self.persons.values():
            if other.birth_year and other.birth_year == person.birth_year and _normalized_name(other) == name:
                return other
        return None

    def add(self, person: Person) -> bool:
        dup = self.find_duplicate(person)
        if dup is not None:
            logging.warning(
                "Duplicate member detected (matches %s). Skipping add: %s %s",
                dup.id,
                person.display_name,
                person.birth_year,
            )
            return False
        self.persons[person.id] = person
        logging.info("Added person %s (%s)", person.id, person.display_name)
        self._notify("add", person.id)
        return True

    def put(self, person: Person) -> None:
        """Insert or replace by id, without duplicate detection (imports/merges)."""
        action = "update" if person.id in self.persons else "add"
        self.persons[person.id] = person
        self._notify(action, person.id)

    def update(self, pid: str, updates: Optional[Dict[str, Any]] = None, **kw: Any) -> Optional[Person]:
        """Merge ``updates`` into the record and refresh ``updated_at``.

        Unknown ids are a no-op returning None. Field names are the Person
        attribute names; ``id`` and ``created_at`` cannot be changed.
        """
        p = self.persons.get(pid)
        if p is None:
            logging.info("update ignored for unknown person %s", pid)
            return None
        changes = dict(updates or {})
        changes.update(kw)
        old_spouse = p.spouse_id
        for key, value in changes.items():
            if key in _IMMUTABLE:
                continue
            if key not in _PERSON_FIELDS:
                logging.warning("update of %s: ignoring unknown field %r", pid, key)
                continue
            if key in ("birth_year", "death_year"):
                value = _opt_int(value)
            elif key in ("children", "parents", "tags"):
                value = list(value or [])
            setattr(p, key, value)
        if "name" not in changes and {"first_name", "middle_name", "last_name"} & set(changes):
            p.name = p.compose_name()
        p.touch()
        if p.spouse_id != old_spouse:
            link_spouses(self.persons, pid, p.spouse_id)
        self._notify("update", pid)
        return p

    def delete(self, pid: str) -> bool:
        if pid not in self.persons:
            return False
        del self.persons[pid]
        touched = remove_references(self.persons, pid)
        unlink_person(self.events.values(), pid)
        unlink_person(self.documents.values(), pid)
        logging.info("Deleted person %s; cleaned references in %d records", pid, len(touched))
        self._notify("delete", pid)
        return True

    def replace_all(self, persons: Iterable[Person]) -> None:
        self.persons = {p.id: p for p in persons}
        self._notify("reload", "*")

    def load(self, data: Dict[str, Any]) -> None:
        """Replace the person map with a persisted ``{id: person-json}`` mapping."""
        persons = []
        for key, raw in data.items():
            if not isinstance(raw, dict):
                logging.warning("Skipping malformed record %r", key)
                continue
            raw = dict(raw)
            raw.setdefault("id", key)
            persons.append(Person.from_dict(raw))
        self.replace_all(persons)

    def to_map(self) -> Dict[str, Dict[str, Any]]:
        return {pid: p.to_dict() for pid, p in self.persons.items()}

    # --- events ---
    def add_event(self, event: FamilyEvent) -> None:
        self.events[event.id] = event
        self._notify("add_event", event.id)

    def get_event(self, eid: str) -> Optional[FamilyEvent]:
        return self.events.get(eid)

    def update_event(self, eid: str, updates: Dict[str, Any]) -> Optional[FamilyEvent]:
        ev = self.events.get(eid)
        if ev is None:
            return None
        for key, value in updates.items():
            if key not in _IMMUTABLE and hasattr(ev, key):
                setattr(ev, key, value)
        ev.updated_at = utcnow()
        self._notify("update_event", eid)
        return ev

    def delete_event(self, eid: str) -> bool:
        if self.events.pop(eid, None) is None:
            return False
        self._notify("delete_event", eid)
        return True

    def list_events(self) -> List[FamilyEvent]:
        return list(self.events.values())

    def timeline(self) -> List[FamilyEvent]:
        return sorted(self.events.values(), key=lambda e: e.sort_key())

    def events_for(self, pid: str) -> List[FamilyEvent]:
        return [e for e in self.timeline() if pid in e.person_ids]

    # --- documents ---
    def add_document(self, doc: FamilyDocument) -> None:
        self.documents[doc.id] = doc
        self._notify("add_document", doc.id)

    def get_document(self, did: str) -> Optional[FamilyDocument]:
        return self.documents.get(did)

    def update_document(self, did: str, updates: Dict[str, Any]) -> Optional[FamilyDocument]:
        doc = self.documents.get(did)
        if doc is None:
            return None
        for key, value in updates.items():
            if key not in _IMMUTABLE and hasattr(doc, key):
                setattr(doc, key, value)
        doc.updated_at = utcnow()
        self._notify("update_document", did)
        return doc

    def delete_document(self, did: str) -> bool:
        if self.documents.pop(did, None) is None:
            return False
        self._notify("delete_document", did)
        return True

    def list_documents(self) -> List[FamilyDocument]:
        return list(self.documents.values())

    def documents_for(self, pid: str) -> List[FamilyDocument]:
        return [d for d in self.documents.values() if pid in d.person_ids]


class JsonFileStore:
    """Wholesale reader/writer for the persisted family map."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read_map(self) -> Dict[str, Any]:
        return json_load_map(self.path)

    def write_map(self, data: Dict[str, Any]) -> None:
        json_save_map(self.path, data)

    def exists(self) -> bool:
        return self.path.exists()

    def load_into(self, store: PersonStore) -> int:
        data = self.read_map()
        store.load(data)
        logging.info("Loaded %d persons from %s", len(store), self.path)
        return len(store)

    def save(self, store: PersonStore) -> None:
        self.write_map(store.to_map())

    def merge_person(self, data: Dict[str, Any]) -> Person:
        """Merge one person record into the file keyed by its id.

        The file is created (as an empty map) when missing.
        """
        ensure_json_file(self.path)
        family = self.read_map()
        person = Person.from_dict(data)
        family[person.id] = person.to_dict()
        self.write_map(family)
        return person

    def autosave(self, store: PersonStore) -> Listener:
        """Subscribe a listener that rewrites the file after person mutations."""

        def _on_change(action: str, record_id: str) -> None:
            if action in ("add", "update", "delete", "reload"):
                self.save(store)

        store.subscribe(_on_change)
        return _on_change


def open_store(
    path: Path,
    seed: Optional[Callable[[PersonStore], int]] = None,
    autosave: bool = True,
) -> Tuple[PersonStore, JsonFileStore]:
    """Load the family file into a new store.

    ``seed`` fills a store that is still empty after loading; the result is
    written back once. With ``autosave`` later person mutations rewrite the
    file.
    """
    file_store = JsonFileStore(path)
    store = PersonStore()
    file_store.load_into(store)
    if not len(store) and seed is not None and seed(store):
        file_store.save(store)
    if autosave:
        file_store.autosave(store)
    return store, file_store
