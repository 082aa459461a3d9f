from pathlib import Path
import subprocess
import sys
import threading

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class FakeGit:
    """Stand-in for subprocess.run that records git invocations."""

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.default = (0, "", "")
        self._lock = threading.Lock()

    def __call__(self, args, cwd=None, **kwargs):
        with self._lock:
            self.calls.append((list(args), Path(cwd)))
        response = self.responses.get(tuple(args[1:]), self.default)
        if callable(response):
            response = response()
        if isinstance(response, BaseException):
            raise response
        returncode, stdout, stderr = response
        return subprocess.CompletedProcess(args, returncode, stdout, stderr)

    @property
    def commands(self):
        return [args[1:] for args, _ in self.calls]


@pytest.fixture
def fake_git(monkeypatch):
    fake = FakeGit()
    monkeypatch.setattr("repox.core.subprocess.run", fake)
    return fake
