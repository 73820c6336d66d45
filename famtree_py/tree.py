"""Descendant tree builder.

Turns the flat person map into a nested ``FamilyNode`` structure rooted at one
person. Children are followed through ``Person.children``; the spouse is a
single lookup. The data is user-edited and may hold dangling ids, self
references or cycles, so recursion is bounded by ``max_depth`` and unknown
ids are silently dropped.

API:
    build_node(person_id, store, depth=0, max_depth=10, parent_name=None) -> Optional[FamilyNode]
    find_roots(store) -> List[str]
    build_forest(store, max_depth=10) -> List[FamilyNode]
    resolve_root(store, preferred_id=None) -> Optional[str]   (None: show the whole forest)

``store`` is anything with a ``get(id)`` method returning a Person or None and
a ``list()`` method (``PersonStore`` in practice).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List, Optional
from .models import Person

MAX_DEPTH = 10


@dataclass
class FamilyNode:
    person: Person
    spouse: Optional[Person] = None
    children: List["FamilyNode"] = field(default_factory=list)
    level: int = 0
    parent_name: Optional[str] = None

    @property
    def id(self) -> str:
        return self.person.id

    def to_dict(self) -> dict:
        return {
            "id": self.person.id,
            "name": self.person.display_name,
            "spouse": self.spouse.id if self.spouse else None,
            "level": self.level,
            "parentName": self.parent_name,
            "children": [c.to_dict() for c in self.children],
        }


def get_person(store, person_id: Optional[str]) -> Optional[Person]:
    if not person_id:
        return None
    return store.get(person_id)


def get_spouse(store, person: Person) -> Optional[Person]:
    # a dangling or self-pointing spouse id counts as no spouse
    if not person.spouse_id or person.spouse_id == person.id:
        return None
    return store.get(person.spouse_id)


def get_children(store, person: Person) -> List[Person]:
    out = []
    for cid in person.children:
        child = store.get(cid)
        if child is not None:
            out.append(child)
    return out


def build_node(
    person_id: Optional[str],
    store,
    depth: int = 0,
    max_depth: int = MAX_DEPTH,
    parent_name: Optional[str] = None,
    guard_cycles: bool = False,
    _path: FrozenSet[str] = frozenset(),
) -> Optional[FamilyNode]:
    """Build the descendant subtree of ``person_id``.

    Returns None when the id does not resolve or ``depth > max_depth``. With
    ``guard_cycles`` a branch also stops at a person already on its own
    ancestor path.
    """
    if depth > max_depth:
        return None
    person = get_person(store, person_id)
    if person is None:
        return None
    if guard_cycles:
        if person.id in _path:
            return None
        _path = _path | {person.id}

    node = FamilyNode(
        person=person,
        spouse=get_spouse(store, person),
        level=depth,
        parent_name=parent_name,
    )
    for child in get_children(store, person):
        sub = build_node(
            child.id,
            store,
            depth + 1,
            max_depth,
            person.display_name,
            guard_cycles,
            _path,
        )
        if sub is not None:
            node.children.append(sub)
    return node


def find_roots(store) -> List[str]:
    """Ids of persons not listed as a child of any other person.

    Keeps store order. An empty result (no persons, or every person is
    someone else's child) means there is nothing to draw.
    """
    persons = store.list()
    listed = set()
    for p in persons:
        for cid in p.children:
            if cid != p.id:
                listed.add(cid)
    return [p.id for p in persons if p.id not in listed]


def build_forest(store, max_depth: int = MAX_DEPTH) -> List[FamilyNode]:
    out = []
    for rid in find_roots(store):
        node = build_node(rid, store, 0, max_depth)
        if node is not None:
            out.append(node)
    return out


def resolve_root(store, preferred_id: Optional[str] = None) -> Optional[str]:
    """The single root the tree view should start from, if any.

    Returns ``preferred_id`` while it names a stored person; otherwise None,
    meaning the view shows every root tree (``build_forest``).
    """
    if preferred_id and store.get(preferred_id) is not None:
        return preferred_id
    return None


def iter_nodes(node: Optional[FamilyNode]) -> Iterator[FamilyNode]:
    """Pre-order walk, parent before children."""
    if node is None:
        return
    stack = [node]
    while stack:
        cur = stack.pop()
        yield cur
        stack.extend(reversed(cur.children))


def tree_depth(node: Optional[FamilyNode]) -> int:
    """Number of generations in the tree (0 for no tree)."""
    if node is None:
        return 0
    return 1 + max((tree_depth(c) for c in node.children), default=0)


def count_nodes(node: Optional[FamilyNode]) -> int:
    return sum(1 for _ in iter_nodes(node))
