"""Tests for e-mail redaction in structured logs."""

import pytest
import structlog
from structlog.testing import LogCapture

from shiftboard.log import redact_email, redact_pii


@pytest.fixture
def captured_logs():
    capture = LogCapture()
    structlog.configure(processors=[redact_pii, capture])
    yield capture.entries
    structlog.reset_defaults()


class TestRedactEmail:
    def test_long_local_part(self):
        assert redact_email("kenneth@example.com") == "ken***@example.com"

    def test_short_local_part(self):
        assert redact_email("ab@example.com") == "a***@example.com"

    def test_non_email_untouched(self):
        assert redact_email("not an address") == "not an address"


class TestRedactProcessor:
    def test_email_values_redacted(self):
        event = {"event": "email_sent", "to": "kenneth@example.com", "subject": "Hi", "email": "pat.doe@x.com"}
        out = redact_pii(None, "info", event)
        assert out["to"] == "ken***@example.com"
        assert out["email"] == "pat***@x.com"
        assert out["subject"] == "Hi"

    def test_any_key_redacted(self):
        out = redact_pii(None, "info", {"event": "lead_created", "actor": "staff@example.com", "lead_id": "42"})
        assert out["actor"] == "sta***@example.com"
        assert out["lead_id"] == "42"

    def test_lists_redacted(self):
        out = redact_pii(None, "info", {"event": "x", "recipient": ["kenneth@example.com", "al@x.com"]})
        assert out["recipient"] == ["ken***@example.com", "a***@x.com"]


class TestRouteLogs:
    def test_lead_creation_log_has_no_raw_addresses(self, client, captured_logs):
        resp = client.post("/api/leads", json={"name": "Dana", "email": "dana.scully@fbi.example"})
        assert resp.status_code == 201

        created = [e for e in captured_logs if e["event"] == "lead_created"]
        assert created
        assert created[0]["actor"] == "sta***@example.com"
        for entry in captured_logs:
            values = [str(v) for v in entry.values()]
            assert "staff@example.com" not in values
            assert "dana.scully@fbi.example" not in values
