"""Session store tests — create, resolve, destroy, lazy expiry.

Learn: The store takes an injectable clock, so expiry is tested by
moving a fake clock forward instead of sleeping.
"""

import threading

import pytest

from stockpulse.auth.sessions import Identity, SessionStore, SessionStoreFull


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


ALICE = Identity(user_id="u-1", username="alice", display_name="Alice")
BOB = Identity(user_id="u-2", username="bob")


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return SessionStore(max_age_seconds=60, max_sessions=100, clock=clock)


def test_create_then_resolve(store):
    token = store.create(ALICE)
    assert store.resolve(token) == ALICE
    assert len(store) == 1


def test_tokens_are_unique(store):
    tokens = {store.create(ALICE) for _ in range(50)}
    assert len(tokens) == 50


@pytest.mark.parametrize("token", [None, "", "never-issued", "x" * 43])
def test_unknown_tokens_resolve_to_none(store, token):
    store.create(ALICE)
    assert store.resolve(token) is None


def test_destroy_is_permanent(store):
    token = store.create(ALICE)
    store.destroy(token)
    assert store.resolve(token) is None
    assert store.resolve(token) is None
    assert len(store) == 0


def test_destroy_is_idempotent(store):
    token = store.create(ALICE)
    store.destroy(token)
    store.destroy(token)
    store.destroy("never-issued")
    store.destroy(None)
    assert store.resolve(token) is None


def test_destroy_leaves_other_sessions_alone(store):
    a = store.create(ALICE)
    b = store.create(BOB)
    store.destroy(a)
    assert store.resolve(b) == BOB


def test_resolve_within_max_age(store, clock):
    token = store.create(ALICE)
    clock.advance(60)
    assert store.resolve(token) == ALICE


def test_expired_session_is_evicted_on_resolve(store, clock):
    token = store.create(ALICE)
    other = store.create(BOB)
    assert len(store) == 2

    clock.advance(61)
    assert store.resolve(token) is None
    assert len(store) == 1
    # Still gone, never resurrected
    assert store.resolve(token) is None
    assert len(store) == 1

    # BOB expired too, but nobody asked yet — lazy, not swept
    assert other in store._sessions


def test_identity_name_falls_back_to_username():
    assert ALICE.name == "Alice"
    assert BOB.name == "bob"


def test_store_full_raises(clock):
    store = SessionStore(max_age_seconds=60, max_sessions=2, clock=clock)
    store.create(ALICE)
    store.create(BOB)
    with pytest.raises(SessionStoreFull):
        store.create(ALICE)


def test_store_full_reclaims_expired_sessions(clock):
    store = SessionStore(max_age_seconds=60, max_sessions=2, clock=clock)
    store.create(ALICE)
    store.create(BOB)
    clock.advance(120)

    token = store.create(ALICE)
    assert store.resolve(token) == ALICE
    assert len(store) == 1


def test_clear_drops_everything(store):
    token = store.create(ALICE)
    store.clear()
    assert store.resolve(token) is None
    assert len(store) == 0


def test_concurrent_create_and_destroy(store):
    """Interleaved calls from many threads never corrupt the table."""
    tokens: list[str] = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            token = store.create(ALICE)
            with lock:
                tokens.append(token)
            store.resolve(token)
            store.destroy(token)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(tokens) == 160
    assert len(set(tokens)) == 160
    assert len(store) == 0
