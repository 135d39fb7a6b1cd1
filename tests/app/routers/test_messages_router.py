"""Tests for POST /messages/send."""

import uuid
from unittest.mock import MagicMock, patch

from app.constants.messaging import MessageStatus
from app.models.message import Message

URL = "/messages/send"


def headers(workspace, request_id="req-123"):
    return {"X-Workspace-Id": str(workspace.id), "X-Request-Id": request_id}


@patch("app.adapters.evolution.requests.post")
def test_send_success(mock_post, client, db, setup_workspace, setup_conversation):
    resp = MagicMock(ok=True, status_code=201)
    resp.json.return_value = {"key": {"id": "WA-1"}}
    mock_post.return_value = resp

    response = client.post(
        URL,
        json={"conversation_id": str(setup_conversation.id), "content": "Olá!"},
        headers=headers(setup_workspace),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["request_id"] == "req-123"
    assert body["message"]["status"] == MessageStatus.SENT.value
    assert body["message"]["external_id"] == "WA-1"


def test_validation_error_shape(client, setup_workspace, setup_conversation):
    response = client.post(
        URL,
        json={"conversation_id": str(setup_conversation.id), "message_type": "image"},
        headers=headers(setup_workspace),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"


def test_contact_sender_rejected(client, db, setup_workspace, setup_conversation):
    response = client.post(
        URL,
        json={
            "conversation_id": str(setup_conversation.id),
            "content": "hi",
            "sender_type": "contact",
        },
        headers=headers(setup_workspace),
    )
    assert response.status_code == 400
    assert db.query(Message).count() == 0


def test_unknown_conversation(client, setup_workspace):
    response = client.post(
        URL,
        json={"conversation_id": str(uuid.uuid4()), "content": "hi"},
        headers=headers(setup_workspace),
    )

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["request_id"] == "req-123"


def test_workspace_mismatch(client, setup_conversation, setup_other_workspace):
    response = client.post(
        URL,
        json={"conversation_id": str(setup_conversation.id), "content": "hi"},
        headers=headers(setup_other_workspace),
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "WORKSPACE_MISMATCH"


def test_instance_not_resolved(client, db, setup_workspace, setup_conversation):
    setup_conversation.evolution_instance = None
    db.commit()

    response = client.post(
        URL,
        json={"conversation_id": str(setup_conversation.id), "content": "hi"},
        headers={"X-Workspace-Id": str(setup_workspace.id)},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "INSTANCE_NOT_RESOLVED"
    assert body["request_id"].startswith("send_")
    assert db.query(Message).one().status == MessageStatus.FAILED.value


def test_bad_workspace_header(client, setup_conversation):
    response = client.post(
        URL,
        json={"conversation_id": str(setup_conversation.id), "content": "hi"},
        headers={"X-Workspace-Id": "not-a-uuid"},
    )
    assert response.status_code == 400


def test_inbound_only_type_rejected_before_persisting(
    client, db, setup_workspace, setup_conversation
):
    response = client.post(
        URL,
        json={
            "conversation_id": str(setup_conversation.id),
            "message_type": "location",
            "content": "-23.5,-46.6",
        },
        headers=headers(setup_workspace),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert db.query(Message).count() == 0
