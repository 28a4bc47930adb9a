"""Tests for the persistence gateway: error taxonomy and locked token issuance."""

import asyncio
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from shiftboard.services.store import (
    ConflictError, ReferenceNotFoundError, Store, StoreError, StoreUnavailableError,
    as_uuid, translate_integrity_error,
)


class DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _integrity(message, sqlstate=None):
    return IntegrityError("INSERT ...", {}, DriverError(message, sqlstate))


class TestTranslateIntegrityError:
    def test_unique_by_sqlstate(self):
        assert isinstance(translate_integrity_error(_integrity("boom", "23505")), ConflictError)

    def test_foreign_key_by_sqlstate(self):
        assert isinstance(translate_integrity_error(_integrity("boom", "23503")), ReferenceNotFoundError)

    def test_unique_by_message(self):
        err = _integrity('duplicate key value violates unique constraint "leads_email_key"')
        assert isinstance(translate_integrity_error(err), ConflictError)

    def test_foreign_key_by_message(self):
        err = _integrity('insert violates foreign key constraint "deliverables_project_id_fkey"')
        assert isinstance(translate_integrity_error(err), ReferenceNotFoundError)

    def test_other_constraint(self):
        err = translate_integrity_error(_integrity('new row violates check constraint "ck_leads_tier"', "23514"))
        assert type(err) is StoreError


class TestAsUuid:
    def test_values(self):
        key = uuid.uuid4()
        assert as_uuid(key) is key
        assert as_uuid(str(key)) == key
        assert as_uuid("42") is None
        assert as_uuid(None) is None


class TestStoreGuard:
    def _store(self, error):
        session = MagicMock()
        session.execute = AsyncMock(side_effect=error)
        session.rollback = AsyncMock()
        return Store(session), session

    def test_unconfigured(self):
        store = Store(None)
        assert not store.is_configured
        with pytest.raises(StoreUnavailableError):
            asyncio.run(store.ping())

    def test_operational_error_is_unavailable(self):
        store, session = self._store(OperationalError("SELECT 1", {}, Exception("connection refused")))
        with pytest.raises(StoreUnavailableError):
            asyncio.run(store.ping())
        session.rollback.assert_awaited_once()

    def test_timeout_is_unavailable(self):
        store, _ = self._store(asyncio.TimeoutError())
        with pytest.raises(StoreUnavailableError):
            asyncio.run(store.ping())

    def test_integrity_error_translated(self):
        store, session = self._store(_integrity("dup", "23505"))
        with pytest.raises(ConflictError):
            asyncio.run(store.delete_lead(uuid.uuid4()))
        session.rollback.assert_awaited_once()

    def test_other_dbapi_error(self):
        store, _ = self._store(DBAPIError("SELECT 1", {}, Exception("syntax error")))
        with pytest.raises(StoreError) as exc:
            asyncio.run(store.ping())
        assert not isinstance(exc.value, StoreUnavailableError)

    def test_malformed_id_never_queries(self):
        store, session = self._store(AssertionError("should not query"))
        assert asyncio.run(store.get_lead("not-a-uuid")) is None
        session.execute.assert_not_awaited()


class TestIssueIntakeToken:
    def _session(self, existing=None):
        found = MagicMock()
        found.scalar_one_or_none.return_value = existing
        session = MagicMock()
        session.execute = AsyncMock(side_effect=[MagicMock(), found])
        session.commit = AsyncMock()
        session.refresh = AsyncMock()
        session.rollback = AsyncMock()
        return session

    def test_locks_lead_before_checking(self):
        session = self._session()
        now = datetime.utcnow()
        row, reused = asyncio.run(
            Store(session).issue_intake_token(uuid.uuid4(), "ab" * 32, now + timedelta(days=7), now)
        )
        assert not reused
        assert row.token == "ab" * 32
        lock_stmt = session.execute.await_args_list[0].args[0]
        assert "FOR UPDATE" in str(lock_stmt.compile(dialect=postgresql.dialect()))
        session.add.assert_called_once_with(row)
        session.commit.assert_awaited_once()

    def test_returns_active_token_without_insert(self):
        existing = MagicMock(token="cd" * 32)
        session = self._session(existing)
        now = datetime.utcnow()
        row, reused = asyncio.run(
            Store(session).issue_intake_token(uuid.uuid4(), "ab" * 32, now + timedelta(days=7), now)
        )
        assert reused
        assert row is existing
        session.add.assert_not_called()
