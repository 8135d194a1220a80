"""Shared test fixtures for gatelock tests."""

import subprocess
import sys
import threading
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gatelock.core import LivenessEvidence
from gatelock.models import LockPayload, OwnerStatus


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def gateway_env(tmp_path: Path) -> dict[str, str]:
    """Isolated environment: private state and lock directories, no test-runner opt-out."""
    return {
        "GATELOCK_STATE_DIR": str(tmp_path / "state"),
        "GATELOCK_LOCK_DIR": str(tmp_path / "locks"),
    }


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has exited and been reaped."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


class FakeEvidence(LivenessEvidence):
    """Evidence returning a fixed verdict for every pid."""

    name = "fake"

    def __init__(
        self,
        status: OwnerStatus,
        confirms_identity: bool = True,
        start_time: int | None = None,
    ) -> None:
        self.status = status
        self.confirms_identity = confirms_identity
        self.start_time = start_time
        self.probed: list[int] = []

    def probe(self, pid: int, payload: LockPayload | None) -> OwnerStatus:
        self.probed.append(pid)
        return self.status

    def own_start_time(self) -> int | None:
        return self.start_time


@pytest.fixture
def spawn_gateway() -> Generator:
    """Start long-running stand-in gateway processes, reaped in the background.

    Reaping in a thread means a terminated child disappears from the
    process table instead of lingering as a zombie.
    """
    procs: list[subprocess.Popen] = []

    def _spawn(ignore_sigterm: bool = False) -> subprocess.Popen:
        code = "import signal, time\n"
        if ignore_sigterm:
            code += "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        code += "print('ready', flush=True)\ntime.sleep(60)\n"
        proc = subprocess.Popen([sys.executable, "-c", code], stdout=subprocess.PIPE, text=True)
        assert proc.stdout is not None
        assert proc.stdout.readline().strip() == "ready"
        threading.Thread(target=proc.wait, daemon=True).start()
        procs.append(proc)
        return proc

    yield _spawn

    for proc in procs:
        if proc.poll() is None:
            proc.kill()
        proc.wait(timeout=5)
        if proc.stdout is not None:
            proc.stdout.close()


@pytest.fixture
def fake_evidence() -> type[FakeEvidence]:
    """Factory for evidence with a fixed verdict."""
    return FakeEvidence
