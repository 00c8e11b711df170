from __future__ import annotations

from vmanager_cli.registry import TTLRegistry


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entry_expires_after_ttl() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, str] = TTLRegistry(600, clock=clock)
    reg.put("alice", "session")
    clock.now = 599
    assert reg.peek("alice") == "session"
    clock.now = 600
    assert reg.peek("alice") is None
    assert "alice" not in reg


def test_peek_does_not_refresh() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, str] = TTLRegistry(600, clock=clock)
    reg.put("alice", "session")
    clock.now = 500
    reg.peek("alice")
    clock.now = 700
    assert reg.peek("alice") is None


def test_put_restamps_the_entry() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, int] = TTLRegistry(600, clock=clock)
    reg.put("alice", 1)
    clock.now = 500
    reg.put("alice", 2)
    clock.now = 1000
    assert reg.peek("alice") == 2


def test_sweep_returns_expired_keys() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, int] = TTLRegistry(10, clock=clock)
    reg.put("alice", 1)
    clock.now = 5
    reg.put("bob", 2)
    clock.now = 12
    assert reg.sweep() == ["alice"]
    assert len(reg) == 1
    assert "bob" in reg


def test_pop_ignores_expired_entries() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, int] = TTLRegistry(10, clock=clock)
    reg.put("alice", 1)
    assert reg.pop("alice") == 1
    assert reg.pop("alice") is None
    reg.put("bob", 2)
    clock.now = 20
    assert reg.pop("bob") is None


def test_no_ttl_never_expires() -> None:
    clock = _Clock()
    reg: TTLRegistry[str, int] = TTLRegistry(None, clock=clock)
    reg.put("alice", 1)
    clock.now = 10 ** 9
    assert reg.peek("alice") == 1
    assert reg.sweep() == []
