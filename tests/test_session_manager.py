"""
Tests for session issuing, validation and auto-renewal.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from core.entities.session import Session
from core.errors import SessionExpiredError, SessionNotFoundError
from core.services.session_manager import SessionManager
from infrastructure.sessions.memory import InMemorySessionStore


class TestCreateSession:

    def test_expires_after_ttl(self, session_manager, clock):
        session = session_manager.create_session(7)
        assert session.account_id == 7
        assert session.created_at == clock.now
        assert session.expires_at == clock.now + timedelta(minutes=10)

    def test_session_is_stored(self, session_manager, session_store):
        session = session_manager.create_session(1)
        assert session_store.get(session.id) == session
        assert len(session_store) == 1

    def test_ids_are_unique_under_concurrency(self, session_manager, session_store):
        with ThreadPoolExecutor(max_workers=16) as pool:
            sessions = list(pool.map(lambda _: session_manager.create_session(1), range(500)))
        assert len({s.id for s in sessions}) == 500
        assert len(session_store) == 500

    def test_rejects_invalid_durations(self):
        with pytest.raises(ValueError):
            SessionManager(InMemorySessionStore(), ttl=timedelta(0))
        with pytest.raises(ValueError):
            SessionManager(
                InMemorySessionStore(),
                ttl=timedelta(minutes=1),
                renew_threshold=timedelta(minutes=2),
            )


class TestValidate:

    def test_unknown_session(self, session_manager):
        with pytest.raises(SessionNotFoundError):
            session_manager.validate("00000000-0000-0000-0000-000000000000")

    def test_valid_just_before_ttl(self, session_manager, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=10, microseconds=-1)
        assert session_manager.validate(session.id).account_id == 1

    def test_expired_at_ttl(self, session_manager, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=10)
        with pytest.raises(SessionExpiredError):
            session_manager.validate(session.id)

    def test_expired_session_is_not_evicted_by_validation(self, session_manager, session_store, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=11)
        with pytest.raises(SessionExpiredError):
            session_manager.validate(session.id)
        assert session_store.get(session.id) == session

    def test_no_renewal_with_a_minute_or_more_left(self, session_manager, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=9)
        validated = session_manager.validate(session.id)
        assert validated.expires_at == session.expires_at

    def test_renews_when_less_than_a_minute_left(self, session_manager, session_store, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=9, seconds=1)
        validated = session_manager.validate(session.id)
        assert validated.expires_at == clock.now + timedelta(minutes=10)
        assert validated.id == session.id
        assert validated.account_id == session.account_id
        assert session_store.get(session.id).expires_at == validated.expires_at

    def test_renewed_session_outlives_initial_ttl(self, session_manager, clock):
        session = session_manager.create_session(1)
        clock.advance(minutes=9, seconds=30)
        session_manager.validate(session.id)
        clock.advance(minutes=9)
        assert session_manager.validate(session.id).id == session.id

    def test_expiry_between_checks_is_reported_as_expired(self, clock):
        class RacingStore(InMemorySessionStore):
            def extend(self, session_id, expires_at, now):
                # another caller observes the session after it lapsed
                return super().extend(session_id, expires_at, now + timedelta(minutes=1))

        manager = SessionManager(RacingStore(), clock=clock)
        session = manager.create_session(1)
        clock.advance(minutes=9, seconds=30)
        with pytest.raises(SessionExpiredError):
            manager.validate(session.id)


class TestRenewAndPurge:

    def test_renew_sets_fresh_expiry(self, session_manager, clock):
        session = session_manager.create_session(3)
        clock.advance(minutes=4)
        renewed = session_manager.renew(session)
        assert renewed.expires_at == clock.now + timedelta(minutes=10)
        assert (renewed.id, renewed.account_id) == (session.id, session.account_id)

    def test_renew_is_idempotent(self, session_manager, clock):
        session = session_manager.create_session(3)
        clock.advance(minutes=2)
        first = session_manager.renew(session)
        second = session_manager.renew(first)
        assert first == second

    def test_renew_unknown_session(self, session_manager, clock):
        stray = Session(id="missing", account_id=1, created_at=clock.now, expires_at=clock.now)
        with pytest.raises(SessionNotFoundError):
            session_manager.renew(stray)

    def test_renew_refuses_expired_session(self, session_manager, session_store, clock):
        session = session_manager.create_session(3)
        clock.advance(minutes=11)
        with pytest.raises(SessionExpiredError):
            session_manager.renew(session)
        assert session_store.get(session.id) == session
        with pytest.raises(SessionExpiredError):
            session_manager.validate(session.id)

    def test_renew_at_expiry_instant_is_refused(self, session_manager, clock):
        session = session_manager.create_session(3)
        clock.advance(minutes=10)
        with pytest.raises(SessionExpiredError):
            session_manager.renew(session)

    def test_renew_keeps_later_expiry(self, session_manager, clock):
        session = session_manager.create_session(3)
        clock.advance(minutes=9, seconds=30)
        auto_renewed = session_manager.validate(session.id)
        # a stale copy must not pull the expiry back
        assert session_manager.renew(session).expires_at == auto_renewed.expires_at

    def test_purge_removes_only_expired(self, session_manager, session_store, clock):
        old = session_manager.create_session(1)
        clock.advance(minutes=6)
        fresh = session_manager.create_session(2)
        clock.advance(minutes=5)
        assert session_manager.purge_expired() == 1
        assert session_store.get(old.id) is None
        assert session_store.get(fresh.id) == fresh


class TestInMemorySessionStore:

    def test_extend_never_resurrects(self, clock):
        store = InMemorySessionStore()
        session = Session(id="s", account_id=1, created_at=clock.now, expires_at=clock.now)
        store.add(session)
        assert store.extend("s", clock.now + timedelta(minutes=10), clock.now) is None
        assert store.get("s") == session

    def test_extend_does_not_shorten(self, clock):
        store = InMemorySessionStore()
        session = Session(id="s", account_id=1, created_at=clock.now,
                          expires_at=clock.now + timedelta(minutes=10))
        store.add(session)
        assert store.extend("s", clock.now + timedelta(minutes=5), clock.now) == session

    def test_duplicate_id_rejected(self, clock):
        store = InMemorySessionStore()
        session = Session(id="s", account_id=1, created_at=clock.now, expires_at=clock.now)
        store.add(session)
        with pytest.raises(KeyError):
            store.add(session)
