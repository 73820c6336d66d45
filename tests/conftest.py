import os
import sys
import tempfile
import shutil
import atexit
from pathlib import Path

import pytest

# Ensure repo root is on sys.path so tests can import the package directly
root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from famtree_py.models import Person
from famtree_py.store import PersonStore

_ft_test_data_dir = None


def pytest_configure(config):
    """Create a session-scoped temporary data directory for tests and
    set FAMTREE_DATA_DIR so the app and any subprocesses write into an
    isolated location instead of the repository-local `data/` folder.
    """
    global _ft_test_data_dir
    td = tempfile.mkdtemp(prefix="ft_test_data_")
    _ft_test_data_dir = td
    os.environ.setdefault("FAMTREE_DATA_DIR", td)


def pytest_unconfigure(config):
    global _ft_test_data_dir
    td = _ft_test_data_dir
    _ft_test_data_dir = None
    if td and os.path.exists(td):
        shutil.rmtree(td, ignore_errors=True)


def _atexit_cleanup():
    if _ft_test_data_dir and os.path.exists(_ft_test_data_dir):
        shutil.rmtree(_ft_test_data_dir, ignore_errors=True)


atexit.register(_atexit_cleanup)


@pytest.fixture
def family():
    """Grandparents with two children, one of whom has a child.

        gp(+gm) -> dad(+mom) -> kid
                -> aunt
    """
    gp = Person(id="gp", name="Hari Thapa", gender="male", birth_year=1930, spouse_id="gm", children=["dad", "aunt"])
    gm = Person(id="gm", name="Gita Rai", gender="female", birth_year=1932, spouse_id="gp", children=["dad", "aunt"])
    dad = Person(id="dad", name="Ravi Thapa", gender="male", birth_year=1960, spouse_id="mom", children=["kid"], parents=["gp", "gm"])
    mom = Person(id="mom", name="Maya Thapa", gender="female", birth_year=1962, spouse_id="dad", children=["kid"])
    aunt = Person(id="aunt", name="Sita Thapa", birth_year=1965, occupation="Pilot", location="Pokhara", parents=["gp", "gm"])
    kid = Person(id="kid", name="Asha Thapa", birth_year=1990, location="Kathmandu", parents=["dad", "mom"])
    return PersonStore([gp, gm, dad, mom, aunt, kid])
