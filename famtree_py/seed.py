"""Demo family used to populate an empty data file on first start."""
from __future__ import annotations
from typing import List
import logging

from .models import Person
from .store import PersonStore

# id: (first, last, gender, birth, death, occupation, location, spouse, children)
FAMILY = {
    "1": ("Ram Bahadur", "Shrestha", "male", 1880, 1940, "Farmer", "Kathmandu, Nepal", "2", ["3", "5"]),
    "2": ("Sita Devi", "Shrestha", "female", 1882, 1945, "Homemaker", "Kathmandu, Nepal", "1", ["3", "5"]),
    "3": ("Bhakta", "Shrestha", "male", 1910, 1985, "Teacher", "Pokhara, Nepal", "4", ["7", "9"]),
    "4": ("Mina", "Shrestha", "female", 1912, 1990, "Nurse", "Pokhara, Nepal", "3", ["7", "9"]),
    "5": ("Laxmi", "Shrestha", "female", 1915, 1988, "Teacher", "Kathmandu, Nepal", "6", []),
    "6": ("Dinesh", "Karki", "male", 1910, 1975, "Engineer", "Kathmandu, Nepal", "5", []),
    "7": ("Prakash", "Shrestha", "male", 1940, None, "Doctor", "Kathmandu, Nepal", "8", ["11"]),
    "8": ("Anita", "Shrestha", "female", 1942, None, "Teacher", "Kathmandu, Nepal", "7", ["11"]),
    "9": ("Sujata", "Shrestha", "female", 1945, None, "Designer", "Pokhara, Nepal", "10", ["13"]),
    "10": ("Ramesh", "Bhandari", "male", 1940, None, "Manager", "Pokhara, Nepal", "9", ["13"]),
    "11": ("Manoj", "Shrestha", "male", 1970, None, "Engineer", "Kathmandu, Nepal", "12", ["15", "16"]),
    "12": ("Sunita", "Shrestha", "female", 1972, None, "Teacher", "Kathmandu, Nepal", "11", ["15", "16"]),
    "13": ("Neha", "Gurung", "female", 1975, None, "Designer", "Pokhara, Nepal", "14", ["17", "18"]),
    "14": ("Anil", "Gurung", "male", 1973, None, "Entrepreneur", "Pokhara, Nepal", "13", ["17", "18"]),
    "15": ("Aarav", "Shrestha", "male", 2000, None, "Student", "Kathmandu, Nepal", None, ["19"]),
    "16": ("Pragya", "Shrestha", "female", 2002, None, "Student", "Kathmandu, Nepal", None, ["20"]),
    "17": ("Kiran", "Gurung", "male", 2003, None, "Student", "Pokhara, Nepal", None, ["21"]),
    "18": ("Roshni", "Gurung", "female", 2005, None, "Student", "Pokhara, Nepal", None, ["22"]),
    "19": ("Aditya", "Shrestha", "male", 2025, None, "Toddler", "Kathmandu, Nepal", None, []),
    "20": ("Isha", "Shrestha", "female", 2026, None, "Infant", "Kathmandu, Nepal", None, []),
    "21": ("Aryan", "Gurung", "male", 2025, None, "Toddler", "Pokhara, Nepal", None, []),
    "22": ("Sanya", "Gurung", "female", 2026, None, "Infant", "Pokhara, Nepal", None, []),
}


def demo_family() -> List[Person]:
    parents = {}
    for pid, row in FAMILY.items():
        for cid in row[8]:
            parents.setdefault(cid, []).append(pid)
    out = []
    for pid, (first, last, gender, born, died, job, place, spouse, children) in FAMILY.items():
        out.append(
            Person(
                id=pid,
                first_name=first,
                last_name=last,
                gender=gender,
                birth_year=born,
                death_year=died,
                occupation=job,
                location=place,
                spouse_id=spouse,
                children=list(children),
                parents=parents.get(pid, []),
                is_alive=died is None,
                marital_status="married" if spouse else "unmarried",
            )
        )
    return out


def seed_store(store: PersonStore) -> int:
    """Load the demo family into an empty store; returns how many were added."""
    if len(store):
        return 0
    added = sum(1 for p in demo_family() if store.add(p))
    logging.info("Seeded store with %d demo persons", added)
    return added
