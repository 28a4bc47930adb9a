"""Tests for the public contact form endpoint."""


class TestContactEndpoint:
    def test_submission_creates_classified_lead(self, client, store, sent_emails):
        resp = client.post("/api/contact", json={
            "name": "Pat Doe",
            "email": "  Pat@Example.COM ",
            "message": "We need a Shopify integration ASAP",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["steps"]["contact_submission"] is True
        assert body["steps"]["classification"] is True

        lead = next(iter(store.leads.values()))
        assert body["lead_id"] == str(lead.id)
        assert lead.email == "pat@example.com"
        assert lead.tier == "SOFTBALL"
        assert lead.status == "qualified"
        assert store.contact_submissions[0].email == "pat@example.com"

        recipients = [call.args[0] for call in sent_emails.await_args_list]
        assert "admin@example.com" in recipients
        assert "pat@example.com" in recipients

    def test_returning_visitor_keeps_existing_lead(self, client, store):
        store.add_lead(name="Pat Doe", email="pat@example.com", tier="HARD", status="contacted")
        resp = client.post("/api/contact", json={"name": "Pat Doe", "email": "pat@example.com", "message": "Following up"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["lead_id"] is None
        assert "classification" not in body["steps"]

        lead = next(iter(store.leads.values()))
        assert lead.tier == "HARD"
        assert lead.status == "contacted"

    def test_store_down_email_is_enough(self, client, store):
        store.fail = {"*"}
        resp = client.post("/api/contact", json={"name": "Pat", "email": "pat@example.com", "message": "Hi"})
        assert resp.status_code == 201
        assert resp.json()["steps"]["contact_submission"] is False

    def test_all_channels_fail(self, client, store, sent_emails):
        store.fail = {"*"}
        sent_emails.return_value = False
        resp = client.post("/api/contact", json={"name": "Pat", "email": "pat@example.com", "message": "Hi"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to submit form. Please try again or email us directly."}

    def test_missing_fields(self, client):
        resp = client.post("/api/contact", json={"message": "Hi"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: name, email"

    def test_blank_field_reported_missing(self, client):
        resp = client.post("/api/contact", json={"name": "   ", "email": "pat@example.com", "message": "Hi"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: name"

    def test_invalid_email(self, client):
        resp = client.post("/api/contact", json={"name": "Pat", "email": "not-an-email", "message": "Hi"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid email format"

    def test_invalid_json(self, client):
        resp = client.post("/api/contact", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid JSON in request body"
