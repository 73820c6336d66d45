"""Relationship normalizer.

Keeps spouse/children/parents references consistent when records are removed
or re-linked. All functions work on a ``{person_id: Person}`` mapping and
mutate the records in place; touched records get a fresh ``updated_at``.

APIs:
    remove_references(persons, removed_id) -> List[str]
    unlink_person(records, removed_id) -> List[str]
    link_spouses(persons, a_id, b_id) -> List[str]
    find_problems(persons) -> List[Problem]

The single pass in ``remove_references`` is O(n) per delete, which is fine for
family-sized data (tens to a few hundred records).
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Any
from .models import Person, utcnow


def remove_references(persons: Dict[str, Person], removed_id: str) -> List[str]:
    """Drop every reference to ``removed_id`` from the remaining records.

    Three independent checks per record: spouse equality, children filter,
    parents filter. Returns the ids of the records that changed.
    """
    touched: List[str] = []
    for pid, p in persons.items():
        changed = False
        if p.spouse_id == removed_id:
            p.spouse_id = None
            changed = True
        if removed_id in p.children:
            p.children = [c for c in p.children if c != removed_id]
            changed = True
        if removed_id in p.parents:
            p.parents = [x for x in p.parents if x != removed_id]
            changed = True
        if changed:
            p.touch()
            touched.append(pid)
    return touched


def unlink_person(records: Iterable[Any], removed_id: str) -> List[str]:
    """Remove ``removed_id`` from the ``person_ids`` of events or documents.

    The records themselves are kept; only the link to the deleted person goes.
    """
    touched: List[str] = []
    for rec in records:
        if removed_id in rec.person_ids:
            rec.person_ids = [x for x in rec.person_ids if x != removed_id]
            rec.updated_at = utcnow()
            touched.append(rec.id)
    return touched


def link_spouses(persons: Dict[str, Person], a_id: str, b_id: Optional[str]) -> List[str]:
    """Make the spouse link between ``a_id`` and ``b_id`` symmetric.

    ``a_id`` is expected to already point at ``b_id`` (or at nothing when
    ``b_id`` is None). Anyone else still pointing at ``a_id`` or ``b_id`` as a
    spouse is released, and ``b_id`` is pointed back at ``a_id``. A ``b_id``
    that is not in the mapping is left dangling; rendering tolerates it.
    """
    touched: List[str] = []
    for pid, p in persons.items():
        if pid in (a_id, b_id):
            continue
        if p.spouse_id == a_id or (b_id is not None and p.spouse_id == b_id):
            p.spouse_id = None
            p.touch()
            touched.append(pid)
    if b_id is not None and b_id != a_id:
        partner = persons.get(b_id)
        if partner is not None and partner.spouse_id != a_id:
            partner.spouse_id = a_id
            partner.touch()
            touched.append(b_id)
    return touched


@dataclass
class Problem:
    person_id: str
    kind: str
    ref: Optional[str] = None

    def describe(self, persons: Dict[str, Person]) -> str:
        p = persons.get(self.person_id)
        who = f"{p.display_name} ({self.person_id})" if p else self.person_id
        messages = {
            "dangling_spouse": f"{who}: spouse {self.ref} does not exist",
            "dangling_child": f"{who}: child {self.ref} does not exist",
            "dangling_parent": f"{who}: parent {self.ref} does not exist",
            "asymmetric_spouse": f"{who}: spouse {self.ref} does not point back",
            "self_reference": f"{who}: refers to itself",
            "duplicate_child": f"{who}: child {self.ref} listed more than once",
        }
        return messages.get(self.kind, f"{who}: {self.kind}")


def find_problems(persons: Dict[str, Person]) -> List[Problem]:
    """Report reference problems without fixing anything."""
    problems: List[Problem] = []
    for pid, p in persons.items():
        if p.spouse_id:
            partner = persons.get(p.spouse_id)
            if p.spouse_id == pid:
                problems.append(Problem(pid, "self_reference", pid))
            elif partner is None:
                problems.append(Problem(pid, "dangling_spouse", p.spouse_id))
            elif partner.spouse_id != pid:
                problems.append(Problem(pid, "asymmetric_spouse", p.spouse_id))
        seen = set()
        for cid in p.children:
            if cid == pid:
                problems.append(Problem(pid, "self_reference", pid))
            elif cid not in persons:
                problems.append(Problem(pid, "dangling_child", cid))
            if cid in seen:
                problems.append(Problem(pid, "duplicate_child", cid))
            seen.add(cid)
        for parent_id in p.parents:
            if parent_id not in persons:
                problems.append(Problem(pid, "dangling_parent", parent_id))
    return problems
