"""Tests for the intake token workflow."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from shiftboard.schemas.intake import IntakeSubmission
from shiftboard.services import intake
from shiftboard.services.intake import (
    INVALID_LINK_MESSAGE, IntakeLinkInvalid, LeadNotFound, TokenState, company_from_message, token_state,
)
from conftest import FakeStore, intake_payload


def make_dispatcher(email_ok: bool = True):
    dispatcher = AsyncMock()
    dispatcher.intake_submitted = AsyncMock(return_value=email_ok)
    dispatcher.post_webhook = AsyncMock(return_value=True)
    return dispatcher


class TestTokenState:
    def test_states(self):
        now = datetime.utcnow()
        store = FakeStore()
        lead = store.add_lead(name="A", email="a@x.com")
        row, _ = asyncio.run(store.issue_intake_token(lead.id, "t1", now + timedelta(days=1), now))
        assert token_state(row, now) is TokenState.ISSUED
        assert token_state(row, now + timedelta(days=2)) is TokenState.EXPIRED
        row.used = True
        assert token_state(row, now) is TokenState.CONSUMED
        assert token_state(None, now) is None

    def test_company_from_message(self):
        assert company_from_message("Hi there\nCompany: Acme Inc\nThanks") == "Acme Inc"
        assert company_from_message("No company line") == ""
        assert company_from_message(None) == ""


class TestIssueToken:
    def setup_method(self):
        self.store = FakeStore()
        self.lead = self.store.add_lead(name="Jordan Lee", email="jordan@lee.example")

    def test_issues_new_token(self):
        issued = asyncio.run(intake.issue_token(self.store, str(self.lead.id), 7))
        assert len(issued.token) == 64
        assert issued.intake_url.endswith(f"/intake/{issued.token}")
        assert not issued.reused
        assert issued.token in self.store.tokens

    def test_reuses_valid_token(self):
        first = asyncio.run(intake.issue_token(self.store, str(self.lead.id), 7))
        second = asyncio.run(intake.issue_token(self.store, str(self.lead.id), 7))
        assert second.reused
        assert second.token == first.token
        assert len(self.store.tokens) == 1

    def test_expired_token_is_replaced(self):
        past = datetime.utcnow() - timedelta(days=10)
        first = asyncio.run(intake.issue_token(self.store, str(self.lead.id), 7, now=past))
        second = asyncio.run(intake.issue_token(self.store, str(self.lead.id), 7))
        assert not second.reused
        assert second.token != first.token

    def test_unknown_lead(self):
        with pytest.raises(LeadNotFound):
            asyncio.run(intake.issue_token(self.store, "9b2f5c1e-4a8d-4e6f-9c3b-1d2e3f4a5b6c", 7))


class TestRedeem:
    def setup_method(self):
        self.store = FakeStore()
        self.lead = self.store.add_lead(
            name="Jordan Lee", email="jordan@lee.example", message="Need help\nCompany: Lee Logistics"
        )
        self.issued = asyncio.run(intake.issue_token(self.store, self.lead.id, 7))

    def test_prefill_from_lead(self):
        prefill = asyncio.run(intake.redeem(self.store, self.issued.token))
        assert prefill == {"name": "Jordan Lee", "email": "jordan@lee.example", "company": "Lee Logistics"}

    def test_unknown_token(self):
        with pytest.raises(IntakeLinkInvalid) as exc:
            asyncio.run(intake.redeem(self.store, "nope"))
        assert str(exc.value) == INVALID_LINK_MESSAGE

    def test_used_and_expired_tokens_get_same_answer(self):
        self.store.tokens[self.issued.token].used = True
        with pytest.raises(IntakeLinkInvalid) as used:
            asyncio.run(intake.redeem(self.store, self.issued.token))

        later = datetime.utcnow() + timedelta(days=30)
        other = self.store.add_lead(name="B", email="b@x.com")
        fresh = asyncio.run(intake.issue_token(self.store, other.id, 7))
        with pytest.raises(IntakeLinkInvalid) as expired:
            asyncio.run(intake.redeem(self.store, fresh.token, now=later))

        assert str(used.value) == str(expired.value)


class TestSubmit:
    def setup_method(self):
        self.store = FakeStore()
        self.lead = self.store.add_lead(name="Jordan Lee", email="jordan@lee.example")
        self.token = asyncio.run(intake.issue_token(self.store, self.lead.id, 7)).token
        self.submission = IntakeSubmission(**intake_payload(self.token))

    def test_full_success(self):
        dispatcher = make_dispatcher()
        result = asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        assert result.succeeded
        assert result.saved_to_db
        assert result.lead_id == self.lead.id
        assert self.store.tokens[self.token].used
        assert self.lead.intake_completed
        assert self.lead.answers["project_type"] == ["automation", "other"]
        assert len(self.store.intake_submissions) == 1

        summary = dispatcher.intake_submitted.await_args.args[0]
        assert summary["name"] == "Jordan Lee"
        assert summary["company_size"] == "11_50"

    def test_second_submit_rejected(self):
        dispatcher = make_dispatcher()
        asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        with pytest.raises(IntakeLinkInvalid):
            asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        assert len(self.store.intake_submissions) == 1

    def test_expired_token_rejected(self):
        later = datetime.utcnow() + timedelta(days=30)
        with pytest.raises(IntakeLinkInvalid):
            asyncio.run(intake.submit(self.store, make_dispatcher(), self.submission, now=later))
        assert not self.store.tokens[self.token].used

    def test_store_down_email_still_delivers(self):
        self.store.fail = {"*"}
        dispatcher = make_dispatcher()
        result = asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        assert result.succeeded
        assert not result.saved_to_db
        assert result.steps["submission_record"] is False
        dispatcher.intake_submitted.assert_awaited_once()

    def test_record_fails_email_succeeds(self):
        self.store.fail = {"record_intake_submission"}
        result = asyncio.run(intake.submit(self.store, make_dispatcher(), self.submission))
        assert result.succeeded
        assert not result.saved_to_db

    def test_both_channels_fail(self):
        self.store.fail = {"*"}
        result = asyncio.run(intake.submit(self.store, make_dispatcher(email_ok=False), self.submission))
        assert not result.succeeded

    def test_webhook_only_when_configured(self, monkeypatch):
        monkeypatch.setattr(intake.settings, "intake_webhook_url", "https://hooks.example.com/intake")
        dispatcher = make_dispatcher()
        result = asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        assert result.steps["automation_webhook"] is True
        url, payload = dispatcher.post_webhook.await_args.args
        assert url == "https://hooks.example.com/intake"
        assert payload["event"] == "intake_submitted"
        assert payload["lead_id"] == str(self.lead.id)

    def test_webhook_skipped_by_default(self):
        dispatcher = make_dispatcher()
        result = asyncio.run(intake.submit(self.store, dispatcher, self.submission))
        assert "automation_webhook" not in result.steps
        dispatcher.post_webhook.assert_not_awaited()
