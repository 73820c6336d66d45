import os
import sys
import shutil
import socket
import time
import subprocess
from pathlib import Path
import urllib.request

import pytest


def _find_free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    addr, port = s.getsockname()
    s.close()
    return port


@pytest.fixture(scope="module")
def live_server(tmp_path_factory):
    """Start a uvicorn server from a temporary copy of the package and yield base url.

    The fixture copies the famtree_py package into a temp dir, starts uvicorn as a
    subprocess there with FAMTREE_DATA_DIR pointing at a fresh data directory,
    waits for readiness by polling /openapi.json, and then yields the base URL
    (http://127.0.0.1:PORT). The first start seeds the demo family. After the
    tests complete the server is terminated.
    """
    tmp = tmp_path_factory.mktemp("ft_live")
    # repo root is two levels up from tests/integration/conftest.py
    repo_root = Path(__file__).resolve().parents[2]
    shutil.copytree(repo_root / "famtree_py", tmp / "famtree_py")

    port = _find_free_port()
    cmd = [sys.executable, "-m", "uvicorn", "famtree_py.web.app:app", "--host", "127.0.0.1", "--port", str(port)]
    env = os.environ.copy()
    env.pop("FAMTREE_CONFIG", None)
    env["FAMTREE_DATA_DIR"] = str(tmp / "data")
    env["FAMTREE_SEED"] = "1"
    # Ensure the temporary copy wins over an installed package
    env_pythonpath = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = str(tmp) + (os.pathsep + env_pythonpath if env_pythonpath else "")
    # Do not capture stdout/stderr so server startup errors are visible in test output
    proc = subprocess.Popen(cmd, cwd=str(tmp), env=env, stdout=None, stderr=None)

    base = f"http://127.0.0.1:{port}"
    # allow a bit more time on slower CI hosts
    deadline = time.time() + 30
    last_exc = None
    while time.time() < deadline:
        try:
            with urllib.request.urlopen(base + "/openapi.json", timeout=1) as r:
                if r.status == 200:
                    break
        except OSError as e:
            last_exc = e
            time.sleep(0.2)
            continue
    else:
        proc.kill()
        proc.wait(timeout=5)
        pytest.fail(f"Server did not become ready in time; last error: {last_exc}")

    try:
        yield base
    finally:
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
