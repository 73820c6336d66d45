"""Tree view interaction state.

One ``InteractionController`` drives a tree view. It holds the only
"active person" selection, the popover mode, the collapsed-node set, the
zoom level and the user-chosen root. Without a chosen root every root tree
is rendered. Mutations go through the store; the controller listens to
store changes so a later ``render`` rebuilds the trees.

Popover modes::

    none --click_node--> selected-view --toggle_edit--> selected-edit
      ^                    |   ^                           |
      +--click_outside-----+   +-------save / cancel-------+
      +--delete (confirmed)----+
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
import logging

from .layout import LayoutEngine, TreeLayout, ZoomControl, auto_fit_scale, render_svg
from .models import Person, _opt_int, life_status, relationship_text, spouse_relationship_text
from .settings import Settings
from .store import PersonStore
from .tree import FamilyNode, build_forest, build_node, get_spouse, resolve_root

# click targets that keep the popover open
POPOVER = "popover"
NODE_ICON = "node-icon"


class Mode(str, Enum):
    NONE = "none"
    VIEW = "selected-view"
    EDIT = "selected-edit"


@dataclass
class PersonFormValues:
    """Raw text of the popover edit form."""

    name: str = ""
    birth_year: str = ""
    death_year: str = ""
    location: str = ""
    occupation: str = ""
    notes: str = ""

    @staticmethod
    def from_person(p: Person) -> "PersonFormValues":
        return PersonFormValues(
            name=p.display_name,
            birth_year=str(p.birth_year) if p.birth_year else "",
            death_year=str(p.death_year) if p.death_year else "",
            location=p.location or "",
            occupation=p.occupation or "",
            notes=p.notes or "",
        )

    def to_updates(self, current: Person) -> Dict[str, Any]:
        """Store updates for these values.

        Years that do not parse as integers become absent. A blank name keeps
        the current one; other blank fields become absent.
        """
        return {
            "name": (self.name or "").strip() or current.name,
            "birth_year": _opt_int(self.birth_year),
            "death_year": _opt_int(self.death_year),
            "location": (self.location or "").strip() or None,
            "occupation": (self.occupation or "").strip() or None,
            "notes": (self.notes or "").strip() or None,
        }


@dataclass
class RenderedView:
    # the chosen root, or None when every root tree is shown
    root_id: Optional[str]
    nodes: List[FamilyNode]
    layout: TreeLayout
    svg: str
    auto_fit: float
    scale: float
    zoom: int
    active_person_id: Optional[str] = None
    mode: Mode = Mode.NONE
    collapsed: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return self.layout.is_empty

    @property
    def root_ids(self) -> List[str]:
        return [n.person.id for n in self.nodes]


class InteractionController:
    def __init__(
        self,
        store: PersonStore,
        settings: Optional[Settings] = None,
        max_depth: Optional[int] = None,
        templates_dir: Optional[Path] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.max_depth = max_depth if max_depth is not None else self.settings.tree_display.generation_limit
        self.active_person_id: Optional[str] = None
        self.mode = Mode.NONE
        self.collapsed: Set[str] = set()
        self.zoom = ZoomControl()
        self.preferred_root_id: Optional[str] = None
        self.engine = LayoutEngine(self.settings.tree_display.layout)
        self.templates_dir = templates_dir
        self._stale = True
        self._cached: Optional[Tuple[Optional[str], List[FamilyNode]]] = None
        store.subscribe(self._on_store_change)

    def close(self) -> None:
        self.store.unsubscribe(self._on_store_change)

    def _on_store_change(self, action: str, record_id: str) -> None:
        self._stale = True
        if action in ("delete", "reload"):
            if record_id != "*":
                self.collapsed.discard(record_id)
            if self.active_person_id and self.active_person_id not in self.store:
                self.close_details()

    # --- selection ---
    @property
    def active_person(self) -> Optional[Person]:
        return self.store.get(self.active_person_id)

    def click_node(self, person_id: str) -> Mode:
        if person_id not in self.store:
            logging.warning("click on unknown person %s", person_id)
            return self.mode
        self.active_person_id = person_id
        self.mode = Mode.VIEW
        return self.mode

    def close_details(self) -> Mode:
        self.active_person_id = None
        self.mode = Mode.NONE
        return self.mode

    def click_outside(self, target: Optional[str] = None) -> Mode:
        if target in (POPOVER, NODE_ICON):
            return self.mode
        return self.close_details()

    def toggle_edit(self) -> Mode:
        if self.mode == Mode.VIEW:
            self.mode = Mode.EDIT
        elif self.mode == Mode.EDIT:
            self.mode = Mode.VIEW
        return self.mode

    def form_values(self) -> Optional[PersonFormValues]:
        p = self.active_person
        return PersonFormValues.from_person(p) if p else None

    def save(self, values: PersonFormValues) -> Optional[Person]:
        if self.mode != Mode.EDIT:
            logging.info("save ignored outside edit mode")
            return None
        current = self.active_person
        if current is None:
            self.close_details()
            return None
        updated = self.store.update(current.id, values.to_updates(current))
        self.mode = Mode.VIEW
        return updated

    def cancel(self) -> Mode:
        if self.mode == Mode.EDIT:
            self.mode = Mode.VIEW
        return self.mode

    def delete(self, confirm: Callable[[Person], bool]) -> bool:
        """Delete the active person after ``confirm(person)`` agrees."""
        person = self.active_person
        if person is None or self.mode == Mode.NONE:
            return False
        if not confirm(person):
            return False
        self.store.delete(person.id)
        self.collapsed.discard(person.id)
        self.close_details()
        return True

    def details(self) -> Optional[Dict[str, Any]]:
        """Popover content for the active person."""
        p = self.active_person
        if p is None:
            return None
        spouse = get_spouse(self.store, p)
        parent = next((o for o in self.store.list() if p.id in o.children and o.id != p.id), None)
        return {
            "person": p,
            "mode": self.mode.value,
            "status": life_status(p),
            "relationship": relationship_text(p, parent.display_name if parent else None),
            "spouse": spouse,
            "spouseRelationship": spouse_relationship_text(p, spouse) if spouse else "",
            "form": PersonFormValues.from_person(p) if self.mode == Mode.EDIT else None,
        }

    # --- view state ---
    def toggle_collapse(self, person_id: str) -> bool:
        """Flip the collapsed state of a node; returns True when now collapsed."""
        if person_id in self.collapsed:
            self.collapsed.remove(person_id)
            return False
        self.collapsed.add(person_id)
        return True

    def choose_root(self, person_id: Optional[str]) -> Optional[str]:
        """Show only the tree under ``person_id``; None (or an unknown id) shows every root."""
        self.preferred_root_id = person_id or None
        self._stale = True
        return resolve_root(self.store, self.preferred_root_id)

    def zoom_in(self) -> int:
        return self.zoom.zoom_in()

    def zoom_out(self) -> int:
        return self.zoom.zoom_out()

    def reset_zoom(self) -> int:
        return self.zoom.reset()

    def _trees(self) -> Tuple[Optional[str], List[FamilyNode]]:
        if self._stale or self._cached is None:
            root_id = resolve_root(self.store, self.preferred_root_id)
            if root_id:
                node = build_node(root_id, self.store, 0, self.max_depth)
                nodes = [node] if node is not None else []
            else:
                nodes = build_forest(self.store, self.max_depth)
            self._cached = (root_id, nodes)
            self._stale = False
        return self._cached

    def render(self, viewport: Optional[Tuple[float, float]] = None) -> RenderedView:
        root_id, nodes = self._trees()
        layout = self.engine.layout_forest(nodes, self.collapsed)
        fit = 1.0
        if viewport is not None and not layout.is_empty:
            fit = auto_fit_scale(layout.width, layout.height, viewport[0], viewport[1])
        scale = self.zoom.effective_scale(fit)
        svg = render_svg(layout, self.settings.tree_display, scale, self.templates_dir)
        return RenderedView(
            root_id=root_id,
            nodes=nodes,
            layout=layout,
            svg=svg,
            auto_fit=fit,
            scale=scale,
            zoom=self.zoom.level,
            active_person_id=self.active_person_id,
            mode=self.mode,
            collapsed=set(self.collapsed),
        )
