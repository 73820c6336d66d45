"""Vertical layout and SVG rendering of a descendant tree.

The engine positions one ``FamilyNode`` tree as cards, connectors and
collapse toggles:

- every person card may carry a spouse card to its right;
- a single child hangs straight below its parent on one vertical connector;
- several children sit in a row under a horizontal bar, each on its own stub;
- a collapsed node keeps its card and toggle but hides everything below it.

Widths are measured bottom-up first, then cards are placed top-down with
each family centred over its children. Several root trees (a forest) are
stacked top to bottom inside one bounding box.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Collection, Dict, List, Optional, Sequence
import logging

from .models import Person
from .settings import TreeDisplaySettings
from .templating import render_template
from .tree import FamilyNode

CARD_WIDTH = 120
CARD_HEIGHT = 72
H_GAP = 20
PARTNER_GAP = 8
BAR_SLOT = CARD_WIDTH + H_GAP
# stem below a parent: longer for a single child, shorter above a bar
STEM_SINGLE = 40
STEM_MULTI = 24
PADDING = 20
# vertical space between stacked root trees
TREE_GAP = 48

ZOOM_MIN = 50
ZOOM_MAX = 200
ZOOM_STEP = 10
ZOOM_DEFAULT = 100

ORIENTATIONS = ("vertical", "horizontal", "circular")

COLORS = {
    "male": "#d9ecff",
    "female": "#ffe0f2",
    "descendant": "#fff7c2",
    "mixed-family": "#d4f7c5",
    "default": "#ffffff",
}

TEXT_SIZES = {"small": 11, "medium": 13, "large": 15}

EMPTY_MESSAGE = "No family members found."


def resolve_card_color(person: Person, depth: int, partner: Optional[Person] = None) -> str:
    """Colour key of a card.

    ``partner`` is only passed for spouse cards; a spouse whose surname
    differs from the person they married in is marked as mixed-family. Both
    surnames must be known for the comparison to apply.
    """
    if partner is not None:
        mine, theirs = person.surname_key, partner.surname_key
        if mine and theirs and mine != theirs:
            return "mixed-family"
    if person.gender in ("male", "female"):
        return person.gender
    if depth > 0:
        return "descendant"
    return "default"


def bar_width(n_children: int) -> int:
    return max(n_children * BAR_SLOT, BAR_SLOT)


def auto_fit_scale(tree_w: float, tree_h: float, view_w: float, view_h: float) -> float:
    """Largest scale <= 1 that fits the tree into the viewport."""
    if tree_w <= 0 or tree_h <= 0:
        return 1.0
    return min(view_w / tree_w, view_h / tree_h, 1.0)


@dataclass
class ZoomControl:
    level: int = ZOOM_DEFAULT

    def zoom_in(self) -> int:
        self.level = min(self.level + ZOOM_STEP, ZOOM_MAX)
        return self.level

    def zoom_out(self) -> int:
        self.level = max(self.level - ZOOM_STEP, ZOOM_MIN)
        return self.level

    def reset(self) -> int:
        self.level = ZOOM_DEFAULT
        return self.level

    def set_level(self, level: int) -> int:
        self.level = max(ZOOM_MIN, min(int(level), ZOOM_MAX))
        return self.level

    def effective_scale(self, auto_fit: float = 1.0) -> float:
        return self.level / 100 * auto_fit


@dataclass
class Card:
    person_id: str
    x: float
    y: float
    name: str
    color_key: str
    level: int
    is_spouse: bool = False
    birth_label: Optional[str] = None
    death_label: Optional[str] = None
    location: Optional[str] = None
    image: Optional[str] = None
    width: float = CARD_WIDTH
    height: float = CARD_HEIGHT

    @property
    def color(self) -> str:
        return COLORS.get(self.color_key, COLORS["default"])

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personId": self.person_id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "name": self.name,
            "colorKey": self.color_key,
            "level": self.level,
            "isSpouse": self.is_spouse,
            "birth": self.birth_label,
            "death": self.death_label,
            "location": self.location,
        }


@dataclass
class Connector:
    # 'line' (single child), 'stem', 'bar' or 'stub'
    kind: str
    parent_id: str
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return abs(self.x2 - self.x1) + abs(self.y2 - self.y1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "parentId": self.parent_id,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
        }


@dataclass
class Toggle:
    person_id: str
    x: float
    y: float
    collapsed: bool

    @property
    def symbol(self) -> str:
        return "+" if self.collapsed else "–"

    def to_dict(self) -> Dict[str, Any]:
        return {"personId": self.person_id, "x": self.x, "y": self.y, "collapsed": self.collapsed, "symbol": self.symbol}


@dataclass
class TreeLayout:
    root_id: Optional[str] = None
    root_ids: List[str] = field(default_factory=list)
    cards: List[Card] = field(default_factory=list)
    connectors: List[Connector] = field(default_factory=list)
    toggles: List[Toggle] = field(default_factory=list)
    width: float = 0
    height: float = 0

    @property
    def is_empty(self) -> bool:
        return not self.cards

    def card_for(self, person_id: str, spouse: bool = False) -> Optional[Card]:
        for c in self.cards:
            if c.person_id == person_id and c.is_spouse == spouse:
                return c
        return None

    def person_ids(self) -> List[str]:
        return [c.person_id for c in self.cards if not c.is_spouse]

    def toggle_for(self, person_id: str) -> Optional[Toggle]:
        for t in self.toggles:
            if t.person_id == person_id:
                return t
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rootId": self.root_id,
            "rootIds": list(self.root_ids),
            "width": self.width,
            "height": self.height,
            "cards": [c.to_dict() for c in self.cards],
            "connectors": [c.to_dict() for c in self.connectors],
            "toggles": [t.to_dict() for t in self.toggles],
        }


def _card(person: Person, x: float, y: float, level: int, partner: Optional[Person] = None) -> Card:
    return Card(
        person_id=person.id,
        x=x,
        y=y,
        name=person.display_name or "Unknown",
        color_key=resolve_card_color(person, level, partner),
        level=level,
        is_spouse=partner is not None,
        birth_label=person.birth_label,
        death_label=person.death_label,
        location=person.location,
        image=person.image_url,
    )


class LayoutEngine:
    def __init__(self, orientation: str = "vertical") -> None:
        if orientation != "vertical":
            logging.warning("Layout %r is not implemented; using vertical", orientation)
            orientation = "vertical"
        self.orientation = orientation

    def layout(self, node: Optional[FamilyNode], collapsed: Collection[str] = ()) -> TreeLayout:
        return self.layout_forest([node] if node is not None else [], collapsed)

    def layout_forest(self, nodes: Sequence[FamilyNode], collapsed: Collection[str] = ()) -> TreeLayout:
        """Lay out independent root trees stacked top to bottom.

        The trees share one bounding box; ``root_id`` is the first tree's root.
        """
        nodes = [n for n in nodes if n is not None]
        out = TreeLayout(
            root_id=nodes[0].person.id if nodes else None,
            root_ids=[n.person.id for n in nodes],
        )
        if not nodes:
            return out
        collapsed = set(collapsed)
        widths: Dict[int, float] = {}
        top = PADDING
        for node in nodes:
            self._measure(node, collapsed, widths)
            first = len(out.cards)
            self._place(node, PADDING, top, collapsed, widths, out)
            top = max(c.y + c.height for c in out.cards[first:]) + TREE_GAP
        out.width = max(widths[id(n)] for n in nodes) + 2 * PADDING
        out.height = max(c.y + c.height for c in out.cards) + PADDING
        return out

    def _unit_width(self, node: FamilyNode) -> float:
        if node.spouse is not None:
            return 2 * CARD_WIDTH + PARTNER_GAP
        return CARD_WIDTH

    def _visible_children(self, node: FamilyNode, collapsed: set) -> List[FamilyNode]:
        return [] if node.person.id in collapsed else node.children

    def _measure(self, node: FamilyNode, collapsed: set, widths: Dict[int, float]) -> float:
        # keyed by object identity: a cyclic tree can repeat the same person
        kids = self._visible_children(node, collapsed)
        row = sum(self._measure(c, collapsed, widths) for c in kids)
        if kids:
            row += H_GAP * (len(kids) - 1)
        w = max(self._unit_width(node), row)
        widths[id(node)] = w
        return w

    def _place(
        self,
        node: FamilyNode,
        left: float,
        top: float,
        collapsed: set,
        widths: Dict[int, float],
        out: TreeLayout,
    ) -> float:
        """Place ``node`` inside [left, left + width) at ``top``; returns its anchor x."""
        width = widths[id(node)]
        unit_w = self._unit_width(node)
        cx = left + width / 2
        unit_left = cx - unit_w / 2
        out.cards.append(_card(node.person, unit_left, top, node.level))
        if node.spouse is not None:
            out.cards.append(
                _card(node.spouse, unit_left + CARD_WIDTH + PARTNER_GAP, top, node.level, partner=node.person)
            )
        bottom = top + CARD_HEIGHT
        pid = node.person.id
        if node.children:
            out.toggles.append(Toggle(pid, cx, bottom, pid in collapsed))

        kids = self._visible_children(node, collapsed)
        if not kids:
            return cx
        child_top = bottom + STEM_SINGLE
        row = sum(widths[id(c)] for c in kids) + H_GAP * (len(kids) - 1)
        x = cx - row / 2
        anchors = []
        for child in kids:
            anchors.append(self._place(child, x, child_top, collapsed, widths, out))
            x += widths[id(child)] + H_GAP

        if len(kids) == 1:
            out.connectors.append(Connector("line", pid, cx, bottom, anchors[0], child_top))
            return cx

        bar_y = bottom + STEM_MULTI
        # the bar must reach the stem and every stub; uneven subtrees shift the anchors
        x1, x2 = min(anchors[0], cx), max(anchors[-1], cx)
        short = bar_width(len(kids)) - (x2 - x1)
        if short > 0:
            x1 -= short / 2
            x2 += short / 2
        out.connectors.append(Connector("stem", pid, cx, bottom, cx, bar_y))
        out.connectors.append(Connector("bar", pid, x1, bar_y, x2, bar_y))
        for ax in anchors:
            out.connectors.append(Connector("stub", pid, ax, bar_y, ax, child_top))
        return cx


def render_svg(
    layout: Optional[TreeLayout],
    display=None,
    scale: float = 1.0,
    templates_dir: Optional[Path] = None,
) -> str:
    """Render a layout to an SVG document.

    ``display`` is a ``TreeDisplaySettings``; colours, text size and which
    labels to show come from it. An empty layout renders the empty-state
    message.
    """
    if display is None:
        display = TreeDisplaySettings()
    layout = layout or TreeLayout()
    width = max(layout.width, 2 * CARD_WIDTH)
    height = max(layout.height, CARD_HEIGHT)
    ctx = {
        "layout": layout,
        "width": width,
        "height": height,
        "scale": scale,
        "display": display,
        "font_size": TEXT_SIZES.get(display.text_size, TEXT_SIZES["medium"]),
        "empty_message": EMPTY_MESSAGE,
    }
    return render_template("tree.svg.j2", ctx, templates_dir)
