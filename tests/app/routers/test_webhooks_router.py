"""Tests for the /webhooks/evolution routes."""

from unittest.mock import MagicMock, patch

from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message

URL = "/webhooks/evolution"


def upsert_event(external_id="ABC123", instance="shop-01"):
    return {
        "event": "messages.upsert",
        "instance": instance,
        "data": {
            "key": {
                "remoteJid": "5511999999999@s.whatsapp.net",
                "fromMe": False,
                "id": external_id,
            },
            "pushName": "Maria",
            "message": {"conversation": "Olá"},
            "messageTimestamp": 1717000000,
        },
    }


def test_first_message_from_new_contact(client, db, setup_connection):
    response = client.post(URL, json=upsert_event())

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["processed"] is True
    assert body["request_id"].startswith("evo_")

    contact = db.query(Contact).one()
    assert contact.phone == "5511999999999"
    assert contact.name == "Maria"
    conversation = db.query(Conversation).one()
    assert conversation.unread_count == 1
    assert conversation.evolution_instance == "shop-01"
    message = db.query(Message).one()
    assert message.external_id == "ABC123"
    assert message.content == "Olá"
    assert message.metadata_["evolution_instance"] == "shop-01"


def test_redelivery_is_idempotent(client, db, setup_connection):
    assert client.post(URL, json=upsert_event()).status_code == 200
    response = client.post(URL, json=upsert_event())

    assert response.status_code == 200
    assert response.json()["results"][0]["status"] == "duplicate"
    assert db.query(Message).count() == 1
    assert db.query(Contact).count() == 1
    assert db.query(Conversation).one().unread_count == 1


def test_unknown_instance_still_200(client, db):
    response = client.post(URL, json=upsert_event(instance="nobody"))
    assert response.status_code == 200
    assert response.json()["processed"] is False
    assert db.query(Message).count() == 0


def test_request_id_header_is_used(client, setup_connection):
    response = client.post(URL, json=upsert_event(), headers={"X-Request-Id": "trace-1"})
    assert response.json()["request_id"] == "trace-1"


def test_secret_required_when_configured(client, setup_connection, monkeypatch):
    monkeypatch.setenv("EVOLUTION_WEBHOOK_SECRET", "s3cret")

    assert client.post(URL, json=upsert_event()).status_code == 401
    wrong = client.post(URL, json=upsert_event(), headers={"Authorization": "Bearer x"})
    assert wrong.status_code == 403
    ok = client.post(URL, json=upsert_event(), headers={"Authorization": "Bearer s3cret"})
    assert ok.status_code == 200
    via_query = client.post(f"{URL}?token=s3cret", json=upsert_event("Q1"))
    assert via_query.status_code == 200


def test_invalid_json_is_acknowledged(client, db):
    response = client.post(
        URL, content="{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is False
    assert body["processed"] is False
    assert body["error"] == "invalid_json"
    assert db.query(Message).count() == 0


def test_non_object_body_is_acknowledged(client):
    response = client.post(URL, json=[1, 2, 3])
    assert response.status_code == 200
    assert response.json()["error"] == "body_not_object"


def test_bad_body_still_needs_token(client, monkeypatch):
    monkeypatch.setenv("EVOLUTION_WEBHOOK_SECRET", "s3cret")
    response = client.post(
        URL, content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 401


def test_batch_with_bad_unit(client, db, setup_connection):
    good = upsert_event("G1")["data"]
    payload = {
        "event": "messages.upsert",
        "instance": "shop-01",
        "data": {"messages": [{"key": {"id": "B1"}}, good]},
    }
    response = client.post(URL, json=payload)

    assert response.status_code == 200
    assert [r["status"] for r in response.json()["results"]] == ["skipped", "processed"]
    assert db.query(Message).one().external_id == "G1"


@patch("app.adapters.n8n.requests.post")
def test_relay_failure_does_not_fail_ack(mock_post, client, setup_connection, monkeypatch):
    monkeypatch.setenv("N8N_INBOUND_WEBHOOK_URL", "https://n8n.example.com/webhook/global")
    mock_post.return_value = MagicMock(ok=False, status_code=503)

    response = client.post(URL, json=upsert_event())

    assert response.status_code == 200
    assert response.json()["processed"] is True
    assert response.json()["forwarded"] is False


def test_hub_verification(client, monkeypatch):
    monkeypatch.setenv("EVOLUTION_VERIFY_TOKEN", "verify-me")
    params = {"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"}

    response = client.get(URL, params=params)
    assert response.status_code == 200
    assert response.text == "42"

    params["hub.verify_token"] = "wrong"
    assert client.get(URL, params=params).status_code == 403


def test_hub_verification_without_token_configured(client):
    params = {"hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "42"}
    assert client.get(URL, params=params).status_code == 403


def test_processing_runs_in_threadpool(client, db, setup_connection):
    calls = []

    async def inline(func, *args):
        calls.append(func.__name__)
        return func(*args)

    with patch("app.routers.webhooks.run_in_threadpool", side_effect=inline):
        response = client.post(URL, json=upsert_event())

    assert response.status_code == 200
    assert calls == ["execute"]
    assert db.query(Message).count() == 1
