"""Tests for foreground gateway stop."""

import signal
import sys
import time
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gatelock.core import ExistenceOnly, stop_foreground_gateway, stopper
from gatelock.models import LockPayload, OwnerStatus, StopResult
from gatelock.paths import resolve_gateway_lock_path

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")


def _write_lock(env: dict[str, str], pid: int) -> Path:
    lock_path, config_path = resolve_gateway_lock_path(env)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    payload = LockPayload(
        pid=pid, created_at=datetime.now(UTC).isoformat(), config_path=str(config_path)
    )
    lock_path.write_text(payload.to_json())
    return lock_path


@pytest.fixture
def signals_sent(monkeypatch: pytest.MonkeyPatch) -> list[tuple[int, int]]:
    """Record os.kill calls made by the stopper instead of delivering them."""
    sent: list[tuple[int, int]] = []

    def _fake_kill(pid: int, sig: int) -> None:
        sent.append((pid, sig))
        raise ProcessLookupError

    monkeypatch.setattr(stopper.os, "kill", _fake_kill)
    return sent


class TestStopWithoutLiveOwner:
    """Tests for stop when there is nothing to signal."""

    def test_no_lock(self, gateway_env: dict[str, str], signals_sent) -> None:
        """No lock file: no-lock and no signal delivered."""
        outcome = stop_foreground_gateway(env=gateway_env, evidence=ExistenceOnly())
        assert outcome.result is StopResult.NO_LOCK
        assert outcome.pid is None
        assert signals_sent == []

    def test_unreadable_lock_is_no_lock(self, gateway_env: dict[str, str], signals_sent) -> None:
        lock_path, _ = resolve_gateway_lock_path(gateway_env)
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("garbage")

        outcome = stop_foreground_gateway(env=gateway_env, evidence=ExistenceOnly())
        assert outcome.result is StopResult.NO_LOCK
        assert signals_sent == []

    def test_dead_owner(self, gateway_env: dict[str, str], dead_pid: int) -> None:
        """Dead owner: not-running with its pid, stale lock removed."""
        lock_path = _write_lock(gateway_env, dead_pid)

        outcome = stop_foreground_gateway(env=gateway_env, evidence=ExistenceOnly())
        assert outcome.result is StopResult.NOT_RUNNING
        assert outcome.pid == dead_pid
        assert not lock_path.exists()

    def test_owner_vanishes_before_signal(
        self, gateway_env: dict[str, str], fake_evidence, signals_sent
    ) -> None:
        """SIGTERM delivery failure counts as already exited."""
        lock_path = _write_lock(gateway_env, 424242)

        outcome = stop_foreground_gateway(
            env=gateway_env, evidence=fake_evidence(OwnerStatus.ALIVE)
        )
        assert outcome.result is StopResult.NOT_RUNNING
        assert outcome.pid == 424242
        assert signals_sent == [(424242, signal.SIGTERM)]
        assert not lock_path.exists()

    def test_unknown_owner_is_signalled(
        self, gateway_env: dict[str, str], fake_evidence, signals_sent
    ) -> None:
        _write_lock(gateway_env, 424242)
        stop_foreground_gateway(env=gateway_env, evidence=fake_evidence(OwnerStatus.UNKNOWN))
        assert signals_sent == [(424242, signal.SIGTERM)]


class TestEscalation:
    """Tests for SIGTERM to SIGKILL escalation without real processes."""

    def test_escalates_when_owner_survives_grace(
        self, gateway_env: dict[str, str], fake_evidence, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        sent: list[int] = []
        monkeypatch.setattr(stopper.os, "kill", lambda pid, sig: sent.append(sig))
        monkeypatch.setattr(stopper, "is_pid_alive", lambda pid: True)
        lock_path = _write_lock(gateway_env, 424242)

        start = time.monotonic()
        outcome = stop_foreground_gateway(
            env=gateway_env,
            grace_period=0.2,
            poll_interval=0.05,
            kill_settle=0.0,
            evidence=fake_evidence(OwnerStatus.ALIVE),
        )
        elapsed = time.monotonic() - start

        assert outcome.result is StopResult.STOPPED
        assert outcome.pid == 424242
        assert sent == [signal.SIGTERM, stopper.FORCE_SIGNAL]
        assert 0.2 <= elapsed < 2.0
        assert not lock_path.exists()

    def test_kill_failure_is_ignored(
        self, gateway_env: dict[str, str], fake_evidence, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _kill(pid: int, sig: int) -> None:
            if sig != signal.SIGTERM:
                raise ProcessLookupError

        monkeypatch.setattr(stopper.os, "kill", _kill)
        monkeypatch.setattr(stopper, "is_pid_alive", lambda pid: True)
        lock_path = _write_lock(gateway_env, 424242)

        outcome = stop_foreground_gateway(
            env=gateway_env,
            grace_period=0.05,
            poll_interval=0.01,
            kill_settle=0.0,
            evidence=fake_evidence(OwnerStatus.ALIVE),
        )
        assert outcome.result is StopResult.STOPPED
        assert not lock_path.exists()


@posix_only
@pytest.mark.slow
class TestStopRealProcess:
    """Tests that signal real stand-in gateway processes."""

    def test_graceful_stop(self, gateway_env: dict[str, str], spawn_gateway) -> None:
        proc = spawn_gateway()
        lock_path = _write_lock(gateway_env, proc.pid)

        outcome = stop_foreground_gateway(
            env=gateway_env, grace_period=5.0, poll_interval=0.05, evidence=ExistenceOnly()
        )

        assert outcome.result is StopResult.STOPPED
        assert outcome.pid == proc.pid
        assert proc.wait(timeout=5) == -signal.SIGTERM
        assert not lock_path.exists()

    def test_forced_stop_when_sigterm_ignored(
        self, gateway_env: dict[str, str], spawn_gateway
    ) -> None:
        proc = spawn_gateway(ignore_sigterm=True)
        lock_path = _write_lock(gateway_env, proc.pid)

        outcome = stop_foreground_gateway(
            env=gateway_env,
            grace_period=0.3,
            poll_interval=0.05,
            kill_settle=0.2,
            evidence=ExistenceOnly(),
        )

        assert outcome.result is StopResult.STOPPED
        assert outcome.pid == proc.pid
        assert proc.wait(timeout=5) == -signal.SIGKILL
        assert not lock_path.exists()
