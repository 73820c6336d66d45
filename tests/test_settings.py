import json

import pytest

from famtree_py.settings import (
    Settings,
    SettingsError,
    TreeDisplaySettings,
    default_settings,
    load_settings,
    merge_profile,
    save_settings,
)


def test_defaults():
    s = Settings()
    assert s.theme == "auto"
    td = s.tree_display
    assert td.layout == "vertical"
    assert td.show_birth_year and td.show_death_year
    assert td.generation_limit == 10
    assert td.node_color == "#5a78c9"
    assert s.advanced.sort_by == "name"


def test_to_dict_is_camel_case():
    d = Settings().to_dict()
    assert d["theme"] == "auto"
    assert d["treeDisplay"]["showBirthYear"] is True
    assert d["advanced"]["caseSensitiveSearch"] is False


def test_merge_returns_new_object():
    s = Settings()
    s2 = s.merge({"theme": "dark", "treeDisplay": {"showDeathYear": False, "textSize": "large"}})
    assert s.theme == "auto"
    assert s.tree_display.show_death_year is True
    assert s2.theme == "dark"
    assert s2.tree_display.show_death_year is False
    assert s2.tree_display.text_size == "large"
    assert s2.tree_display.show_birth_year is True


def test_merge_accepts_snake_case_keys():
    s = Settings().merge({"tree_display": {"generation_limit": 5}})
    assert s.tree_display.generation_limit == 5


@pytest.mark.parametrize(
    "update",
    [
        {"theme": "neon"},
        {"treeDisplay": {"showBirthYear": "yes"}},
        {"treeDisplay": {"generationLimit": 0}},
        {"treeDisplay": {"generationLimit": True}},
        {"treeDisplay": {"layout": "spiral"}},
        {"treeDisplay": {"nodeColor": "blue"}},
        {"dataSync": {"autoSaveInterval": 1}},
        {"profile": {"bio": 42}},
        {"privacy": "all"},
        {"profile": {"name": None}},
        {"treeDisplay": {"showPhotos": None}},
    ],
)
def test_merge_rejects_bad_values(update):
    with pytest.raises(SettingsError):
        Settings().merge(update)


def test_bad_value_rejects_whole_update():
    s = Settings()
    with pytest.raises(SettingsError):
        s.merge({"theme": "dark", "treeDisplay": {"generationLimit": 99}})
    assert s.theme == "auto"


def test_unknown_keys_are_ignored(caplog):
    s = Settings().merge({"colors": {}, "treeDisplay": {"sparkles": True}})
    assert s == Settings()
    assert "sparkles" in caplog.text


def test_json_round_trip():
    s = Settings().merge({"profile": {"name": "Asha", "bio": "hi"}, "advanced": {"sortBy": "birthYear"}})
    assert Settings.from_json(s.to_json()) == s


def test_from_json_invalid():
    with pytest.raises(SettingsError):
        Settings.from_json("{nope")


def test_load_and_save(tmp_path):
    p = tmp_path / "settings.json"
    assert load_settings(p) == Settings()
    s = Settings().merge({"theme": "light"})
    save_settings(p, s)
    assert json.loads(p.read_text())["theme"] == "light"
    assert load_settings(p) == s


def test_load_bad_stored_values_falls_back(tmp_path):
    p = tmp_path / "settings.json"
    p.write_text(json.dumps({"treeDisplay": {"generationLimit": "many"}}))
    assert load_settings(p) == Settings()


def test_tree_display_standalone():
    assert TreeDisplaySettings(show_photos=False).show_photos is False


def test_optional_profile_fields_can_be_cleared():
    s = Settings().merge({"profile": {"bio": "hello", "displayPicture": "me.png"}})
    assert s.profile.bio == "hello"
    cleared = s.merge({"profile": {"bio": None, "displayPicture": None}})
    assert cleared.profile.bio is None
    assert cleared.profile.display_picture is None
    assert cleared.to_dict()["profile"]["bio"] is None


def test_merge_profile_section():
    p = merge_profile(Settings().profile, {"name": "Asha", "language": "ne"})
    assert (p.name, p.language) == ("Asha", "ne")
    with pytest.raises(SettingsError):
        merge_profile(p, {"language": "xx"})


def test_null_section_is_left_alone():
    s = Settings().merge({"theme": "dark"})
    assert s.merge({"profile": None, "theme": None}) == s


def test_load_invalid_json_falls_back(tmp_path, caplog):
    p = tmp_path / "settings.json"
    p.write_text("{not json")
    assert load_settings(p) == Settings()
    assert "Ignoring unreadable settings file" in caplog.text
    p.write_text("[1, 2]")
    assert load_settings(p) == Settings()


def test_load_merges_over_given_defaults(tmp_path):
    p = tmp_path / "settings.json"
    base = default_settings(4)
    assert load_settings(p, base).tree_display.generation_limit == 4
    p.write_text(json.dumps({"treeDisplay": {"generationLimit": 7}}))
    assert load_settings(p, base).tree_display.generation_limit == 7
    p.write_text("{broken")
    assert load_settings(p, base) == base


def test_default_settings_clamps_generation_limit():
    assert default_settings().tree_display.generation_limit == 10
    assert default_settings(3).tree_display.generation_limit == 3
    assert default_settings(0).tree_display.generation_limit == 1
    assert default_settings(500).tree_display.generation_limit == 50
