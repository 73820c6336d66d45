from datetime import datetime, timezone
import pytest
from famtree_py.models import Person
from famtree_py.search import search_people, filter_members, sort_members, family_stats, recently_updated


PEOPLE = [
    Person(id="1", name="Zoë Gurung", occupation="Designer", location="Pokhara", birth_year=1975),
    Person(id="2", name="Ram Shrestha", occupation="Farmer", location="Kathmandu", birth_year=1880, death_year=1940),
    Person(id="3", name="Anil Gurung", occupation="Entrepreneur", location="Pokhara"),
]


def test_empty_query_returns_nothing():
    assert search_people(PEOPLE, "") == []
    assert search_people(PEOPLE, "   ") == []
    assert search_people(PEOPLE, None) == []


def test_substring_over_name_occupation_location():
    assert [p.id for p in search_people(PEOPLE, "gurung")] == ["1", "3"]
    assert [p.id for p in search_people(PEOPLE, "FARM")] == ["2"]
    assert [p.id for p in search_people(PEOPLE, "kathmandu")] == ["2"]


def test_accents_are_ignored():
    assert [p.id for p in search_people(PEOPLE, "zoe")] == ["1"]


def test_case_sensitive_search():
    assert search_people(PEOPLE, "gurung", case_sensitive=True) == []
    assert [p.id for p in search_people(PEOPLE, "Gurung", case_sensitive=True)] == ["1", "3"]


def test_filter_by_status_and_years():
    assert [p.id for p in filter_members(PEOPLE, "deceased")] == ["2"]
    assert [p.id for p in filter_members(PEOPLE, "alive")] == ["1", "3"]
    # a missing birth year never falls inside a bounded window
    assert [p.id for p in filter_members(PEOPLE, min_year=1900)] == ["1"]
    assert [p.id for p in filter_members(PEOPLE, max_year=1900)] == ["2"]
    with pytest.raises(ValueError):
        filter_members(PEOPLE, "zombie")


def test_sort_members():
    assert [p.id for p in sort_members(PEOPLE, "name")] == ["3", "2", "1"]
    assert [p.id for p in sort_members(PEOPLE, "birthYear")] == ["2", "1", "3"]


def test_family_stats():
    st = family_stats(PEOPLE)
    assert (st.total, st.alive, st.deceased, st.generations) == (3, 2, 1, 2)
    assert family_stats([]).generations == 1
    assert family_stats([]).last_updated is None


def test_recently_updated_newest_first():
    people = [Person(id=str(i), name=str(i), updated_at=datetime(2024, 1, i + 1, tzinfo=timezone.utc)) for i in range(6)]
    assert [p.id for p in recently_updated(people)] == ["5", "4", "3", "2"]
    assert len(recently_updated(people, limit=2)) == 2
