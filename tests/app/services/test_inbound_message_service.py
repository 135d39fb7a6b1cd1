"""Tests for InboundMessageService."""

from unittest.mock import patch

import pytest

from app.constants.messaging import (
    ConversationStatus,
    MessageStatus,
    MessageType,
    SenderType,
)
from app.core.context import RequestContext
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message
from app.services.inbound_message_service import InboundMessageService, InboundStatus

JID = "5511999999999@s.whatsapp.net"


def unit(message=None, external_id="MSG1", remote_jid=JID, from_me=False, push_name="Maria"):
    return {
        "key": {"remoteJid": remote_jid, "id": external_id, "fromMe": from_me},
        "message": message if message is not None else {"conversation": "Hello"},
        "messageTimestamp": 1717000000,
        "pushName": push_name,
    }


@pytest.fixture
def ctx(setup_workspace):
    return RequestContext.new(workspace_id=setup_workspace.id)


def test_first_message_creates_contact_conversation_message(
    db, ctx, setup_workspace, setup_connection
):
    result = InboundMessageService(db).process(
        ctx, unit(), connection_id=setup_connection.id, instance_name="shop-01"
    )

    assert result.status == InboundStatus.PROCESSED
    contact = db.query(Contact).one()
    assert contact.phone == "5511999999999"
    assert contact.workspace_id == setup_workspace.id
    assert contact.name == "Maria"

    conversation = db.query(Conversation).one()
    assert conversation.status == ConversationStatus.OPEN.value
    assert conversation.contact_id == contact.id
    assert conversation.connection_id == setup_connection.id
    assert conversation.unread_count == 1
    assert conversation.last_activity_at is not None

    message = db.query(Message).one()
    assert message.content == "Hello"
    assert message.message_type == MessageType.TEXT.value
    assert message.sender_type == SenderType.CONTACT.value
    assert message.status == MessageStatus.RECEIVED.value
    assert message.external_id == "MSG1"
    assert message.metadata_["request_id"] == ctx.correlation_id
    assert message.metadata_["remote_jid"] == JID
    assert message.metadata_["evolution_instance"] == "shop-01"
    assert message.metadata_["message_timestamp"] == 1717000000


def test_replay_is_idempotent(db, ctx, setup_connection):
    service = InboundMessageService(db)
    service.process(ctx, unit(), connection_id=setup_connection.id)
    second = service.process(ctx, unit(), connection_id=setup_connection.id)

    assert second.status == InboundStatus.DUPLICATE
    assert second.ok
    assert db.query(Message).count() == 1
    assert db.query(Contact).count() == 1
    assert db.query(Conversation).count() == 1
    assert db.query(Conversation).one().unread_count == 1


def test_duplicate_patches_missing_file_fields(db, ctx):
    service = InboundMessageService(db)
    service.process(ctx, unit({"imageMessage": {"caption": "pic"}}, external_id="IMG1"))
    message = db.query(Message).one()
    assert message.file_url is None

    service.process(
        ctx,
        unit(
            {"imageMessage": {"caption": "pic", "url": "https://cdn/i.jpg", "mimetype": "image/jpeg"}},
            external_id="IMG1",
        ),
    )
    db.refresh(message)
    assert message.file_url == "https://cdn/i.jpg"
    assert message.mime_type == "image/jpeg"
    assert db.query(Message).count() == 1


def test_from_me_is_skipped(db, ctx):
    result = InboundMessageService(db).process(ctx, unit(from_me=True))
    assert result.status == InboundStatus.SKIPPED
    assert result.reason == "from_me"
    assert db.query(Contact).count() == 0
    assert db.query(Conversation).count() == 0
    assert db.query(Message).count() == 0


def test_missing_remote_jid_is_skipped(db, ctx):
    result = InboundMessageService(db).process(ctx, unit(remote_jid=None))
    assert result.status == InboundStatus.SKIPPED
    assert db.query(Contact).count() == 0


def test_unsupported_message_is_skipped(db, ctx):
    result = InboundMessageService(db).process(ctx, unit({"reactionMessage": {"text": "+1"}}))
    assert result.status == InboundStatus.SKIPPED
    assert result.reason == "unsupported_message"


def test_no_workspace_is_skipped(db):
    result = InboundMessageService(db).process(RequestContext.new(), unit())
    assert result.status == InboundStatus.SKIPPED


def test_sender_is_remote_party_not_instance(db, ctx, setup_connection):
    InboundMessageService(db).process(ctx, unit(), connection_id=setup_connection.id)
    assert db.query(Contact).one().phone != setup_connection.phone_number


def test_failure_is_isolated(db, ctx):
    service = InboundMessageService(db)
    with patch.object(
        service.contact_service, "upsert", side_effect=RuntimeError("boom")
    ):
        failed = service.process(ctx, unit(external_id="BAD"))
    ok = service.process(ctx, unit(external_id="GOOD"))

    assert failed.status == InboundStatus.FAILED
    assert "boom" in failed.reason
    assert ok.status == InboundStatus.PROCESSED
    assert [m.external_id for m in db.query(Message).all()] == ["GOOD"]


def test_unread_counts_only_contact_messages(db, ctx):
    service = InboundMessageService(db)
    service.process(ctx, unit(external_id="A"))
    service.process(ctx, unit(external_id="B"))
    assert db.query(Conversation).one().unread_count == 2
