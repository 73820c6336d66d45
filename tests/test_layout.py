import logging
from famtree_py.layout import (
    LayoutEngine,
    PADDING,
    TREE_GAP,
    ZoomControl,
    auto_fit_scale,
    bar_width,
    render_svg,
    resolve_card_color,
    COLORS,
    EMPTY_MESSAGE,
)
from famtree_py.models import Person
from famtree_py.settings import TreeDisplaySettings
from famtree_py.store import PersonStore
from famtree_py.tree import build_node


def _three_children():
    return PersonStore([
        Person(id="p", name="Parent", children=["c1", "c2", "c3"]),
        Person(id="c1", name="One", children=["g1"]),
        Person(id="c2", name="Two"),
        Person(id="c3", name="Three"),
        Person(id="g1", name="Grandchild"),
    ])


def test_color_resolution_order():
    husband = Person(name="Hari Thapa", gender="male")
    wife = Person(name="Gita Rai", gender="female")
    same = Person(name="Maya Thapa", gender="female")
    plain = Person(name="Kim")
    assert resolve_card_color(wife, 0, partner=husband) == "mixed-family"
    assert resolve_card_color(same, 0, partner=husband) == "female"
    assert resolve_card_color(husband, 3) == "male"
    assert resolve_card_color(plain, 1) == "descendant"
    assert resolve_card_color(plain, 0) == "default"
    assert COLORS["mixed-family"] == "#d4f7c5"


def test_unknown_surname_is_not_mixed_family():
    husband = Person(name="Hari Thapa", gender="male")
    unnamed = Person(gender="female")
    assert resolve_card_color(unnamed, 0, partner=husband) == "female"
    assert resolve_card_color(husband, 0, partner=Person(name="")) == "male"
    assert resolve_card_color(Person(), 1, partner=husband) == "descendant"


def test_bar_width():
    assert bar_width(0) == 140
    assert bar_width(1) == 140
    assert bar_width(3) == 420


def test_multiple_children_share_a_bar():
    st = PersonStore([Person(id="p", name="Parent", children=["c1", "c2", "c3"])] + [Person(id=f"c{i}", name=f"C{i}") for i in (1, 2, 3)])
    layout = LayoutEngine().layout(build_node("p", st))
    kinds = [c.kind for c in layout.connectors]
    assert kinds.count("stem") == 1
    assert kinds.count("bar") == 1
    assert kinds.count("stub") == 3
    bar = next(c for c in layout.connectors if c.kind == "bar")
    assert bar.x2 - bar.x1 == 420
    stubs = [c for c in layout.connectors if c.kind == "stub"]
    tops = {layout.card_for(cid).y for cid in ("c1", "c2", "c3")}
    assert len(tops) == 1
    for stub in stubs:
        assert stub.x1 == stub.x2
        assert bar.x1 <= stub.x1 <= bar.x2


def test_single_child_hangs_directly_below(family):
    layout = LayoutEngine().layout(build_node("dad", family))
    (line,) = layout.connectors
    assert line.kind == "line"
    assert line.x1 == line.x2
    kid = layout.card_for("kid")
    assert kid.center_x == line.x2
    assert kid.y == line.y2


def test_spouse_card_and_colors(family):
    layout = LayoutEngine().layout(build_node("gp", family))
    gm = layout.card_for("gm", spouse=True)
    assert gm is not None and gm.color_key == "mixed-family"
    assert layout.card_for("mom", spouse=True).color_key == "female"
    assert layout.card_for("aunt").color_key == "descendant"
    assert layout.card_for("gp").x + 120 < gm.x


def test_toggles_only_on_nodes_with_children(family):
    layout = LayoutEngine().layout(build_node("gp", family))
    assert {t.person_id for t in layout.toggles} == {"gp", "dad"}
    assert all(t.symbol == "–" for t in layout.toggles)


def test_collapse_hides_subtree_and_expand_restores():
    st = _three_children()
    engine = LayoutEngine()
    node = build_node("p", st)
    expanded = engine.layout(node)
    collapsed = engine.layout(node, {"p"})
    assert collapsed.person_ids() == ["p"]
    assert collapsed.connectors == []
    toggle = collapsed.toggle_for("p")
    assert toggle.collapsed and toggle.symbol == "+"
    assert engine.layout(node, set()).to_dict() == expanded.to_dict()


def test_collapse_inner_node_keeps_siblings():
    st = _three_children()
    layout = LayoutEngine().layout(build_node("p", st), {"c1"})
    assert "g1" not in layout.person_ids()
    assert set(layout.person_ids()) == {"p", "c1", "c2", "c3"}
    assert layout.toggle_for("c1").symbol == "+"
    assert all(c.parent_id != "c1" for c in layout.connectors)


def test_layout_of_nothing_is_empty():
    layout = LayoutEngine().layout(None)
    assert layout.is_empty
    assert EMPTY_MESSAGE in render_svg(layout)
    assert EMPTY_MESSAGE in render_svg(None)


def test_unknown_orientation_falls_back(caplog):
    with caplog.at_level(logging.WARNING):
        engine = LayoutEngine("circular")
    assert engine.orientation == "vertical"
    assert "circular" in caplog.text


def test_auto_fit_scale():
    assert auto_fit_scale(1000, 500, 500, 500) == 0.5
    assert auto_fit_scale(100, 100, 500, 500) == 1.0
    assert auto_fit_scale(0, 0, 500, 500) == 1.0


def test_zoom_bounds():
    z = ZoomControl()
    for _ in range(20):
        z.zoom_in()
    assert z.level == 200
    for _ in range(30):
        z.zoom_out()
    assert z.level == 50
    assert z.reset() == 100
    assert z.zoom_in() == 110
    assert z.set_level(500) == 200
    z.set_level(150)
    assert z.effective_scale(0.5) == 0.75


def test_render_svg_uses_display_settings(family):
    layout = LayoutEngine().layout(build_node("gp", family), {"dad"})
    display = TreeDisplaySettings(connection_line_color="#123456", show_birth_year=False)
    svg = render_svg(layout, display)
    assert svg.startswith("<svg")
    assert "Hari Thapa" in svg
    assert "#123456" in svg
    assert "b. 1930" not in svg
    assert ">+<" in svg
    assert "b. 1930" in render_svg(layout)


def test_render_svg_escapes_names():
    st = PersonStore([Person(id="x", name="<b>Bad</b>")])
    svg = render_svg(LayoutEngine().layout(build_node("x", st)))
    assert "<b>" not in svg
    assert "&lt;b&gt;Bad" in svg


def test_dangling_spouse_draws_single_card():
    st = PersonStore([Person(id="a", name="Ram Karki", gender="male", spouse_id="ghost")])
    layout = LayoutEngine().layout(build_node("a", st))
    assert len(layout.cards) == 1
    assert layout.card_for("a").width == layout.width - 40


def test_bar_reaches_every_stub_with_uneven_subtrees():
    wide_kids = [f"w{i}" for i in range(6)]
    st = PersonStore(
        [
            Person(id="p", name="Parent", children=["n1", "wide"]),
            Person(id="n1", name="Leaf"),
            Person(id="wide", name="Wide", children=wide_kids),
        ]
        + [Person(id=w, name=w.upper()) for w in wide_kids]
    )
    layout = LayoutEngine().layout(build_node("p", st))
    bar = next(c for c in layout.connectors if c.kind == "bar" and c.parent_id == "p")
    stem = next(c for c in layout.connectors if c.kind == "stem" and c.parent_id == "p")
    stubs = [c for c in layout.connectors if c.kind == "stub" and c.parent_id == "p"]
    assert [s.x1 for s in stubs] == [layout.card_for("n1").center_x, layout.card_for("wide").center_x]
    assert (bar.x1, bar.x2) == (80, 570)
    assert bar.x1 <= stem.x1 <= bar.x2
    for stub in stubs:
        assert bar.x1 <= stub.x1 <= bar.x2
        assert stub.y1 == bar.y1


def test_forest_stacks_root_trees():
    st = PersonStore(
        [
            Person(id="a", name="Amrit Gurung", children=["a1", "a2"]),
            Person(id="a1", name="Bina Gurung"),
            Person(id="a2", name="Kiran Gurung"),
            Person(id="b", name="Chandra Limbu"),
        ]
    )
    trees = [build_node("a", st), build_node("b", st)]
    layout = LayoutEngine().layout_forest(trees)
    assert layout.root_id == "a"
    assert layout.root_ids == ["a", "b"]
    assert set(layout.person_ids()) == {"a", "a1", "a2", "b"}
    a1 = layout.card_for("a1")
    b = layout.card_for("b")
    assert b.y == a1.y + a1.height + TREE_GAP
    assert b.x == PADDING
    # the wider tree (two children side by side) sets the width
    assert layout.width == 260 + 2 * PADDING
    assert layout.height == b.y + b.height + PADDING
    assert layout.to_dict()["rootIds"] == ["a", "b"]


def test_forest_of_nothing_is_empty():
    layout = LayoutEngine().layout_forest([])
    assert layout.is_empty
    assert layout.root_id is None and layout.root_ids == []
