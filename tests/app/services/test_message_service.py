"""Tests for MessageService status transitions."""

import pytest

from app.constants.messaging import MessageStatus, SenderType
from app.models.message import Message
from app.services.message_service import MessageService


@pytest.fixture
def outbound_message(db, setup_conversation):
    message = MessageService(db).create_outbound(
        {
            "workspace_id": setup_conversation.workspace_id,
            "conversation_id": setup_conversation.id,
            "content": "reply",
            "message_type": "text",
            "sender_type": SenderType.AGENT.value,
            "external_id": "OUT-1",
            "metadata_": {"source": "crm"},
        }
    )
    db.commit()
    return message


def test_create_outbound_starts_sending(outbound_message):
    assert outbound_message.status == MessageStatus.SENDING.value
    assert outbound_message.id is not None


def test_create_outbound_leaves_commit_to_caller(db, setup_conversation):
    MessageService(db).create_outbound(
        {
            "workspace_id": setup_conversation.workspace_id,
            "conversation_id": setup_conversation.id,
            "content": "draft",
            "sender_type": SenderType.AGENT.value,
        }
    )
    db.rollback()
    assert db.query(Message).count() == 0


def test_mark_failed_keeps_metadata(db, outbound_message):
    MessageService(db).mark_failed(outbound_message, "timeout", "Traceback ...")
    assert outbound_message.status == MessageStatus.FAILED.value
    assert outbound_message.metadata_ == {
        "source": "crm",
        "error": "timeout",
        "error_stack": "Traceback ...",
    }


def test_acks_move_forward(db, outbound_message):
    service = MessageService(db)
    service.mark_sent(outbound_message)
    ws = outbound_message.workspace_id

    delivered = service.apply_status(ws, "OUT-1", MessageStatus.DELIVERED)
    assert delivered.status == MessageStatus.DELIVERED.value
    assert delivered.delivered_at is not None
    assert delivered.read_at is None

    read = service.apply_status(ws, "OUT-1", MessageStatus.READ)
    assert read.status == MessageStatus.READ.value
    assert read.read_at is not None


def test_acks_never_regress(db, outbound_message):
    service = MessageService(db)
    ws = outbound_message.workspace_id
    service.apply_status(ws, "OUT-1", MessageStatus.READ)
    service.apply_status(ws, "OUT-1", MessageStatus.DELIVERED)
    service.apply_status(ws, "OUT-1", MessageStatus.SENT)
    assert outbound_message.status == MessageStatus.READ.value


def test_ack_leaves_failed_alone(db, outbound_message):
    service = MessageService(db)
    service.mark_failed(outbound_message, "x", "y")
    service.apply_status(outbound_message.workspace_id, "OUT-1", MessageStatus.DELIVERED)
    assert outbound_message.status == MessageStatus.FAILED.value


def test_ack_for_unknown_message(db, setup_workspace):
    assert MessageService(db).apply_status(setup_workspace.id, "nope", MessageStatus.READ) is None
