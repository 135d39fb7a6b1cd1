"""Tests for the outbound encoder."""

import pytest

from app.constants.messaging import OUTBOUND_MESSAGE_TYPES, MessageType
from app.core.classifier import classify_message
from app.core.encoder import (
    WIRE_KEYS,
    OutboundContent,
    caption_for,
    decode_envelope,
    encode_envelope,
    encode_gateway_request,
    encode_message,
)
from app.utils.mime import infer_mime_type

JID = "5511999999999@s.whatsapp.net"


def test_text_envelope_shape():
    envelope = encode_envelope(
        OutboundContent(message_type=MessageType.TEXT, content="Hi there"),
        remote_jid=JID,
        instance="shop-01",
        message_id="m-1",
        push_name="Maria",
        conversation_id="c-1",
    )
    assert envelope["event"] == "send.message"
    assert envelope["instance"] == "shop-01"
    assert envelope["sender"] == JID
    data = envelope["data"]
    assert data["key"] == {"remoteJid": JID, "fromMe": True, "id": "m-1"}
    assert data["message"] == {"conversation": "Hi there"}
    assert data["messageType"] == "conversation"
    assert data["status"] == "PENDING"
    assert data["source"] == "crm"
    assert data["instanceId"] == "shop-01"
    assert envelope["meta"] == {"conversationId": "c-1", "evolution_instance": "shop-01"}


@pytest.mark.parametrize(
    "message_type,key",
    [
        (MessageType.IMAGE, "imageMessage"),
        (MessageType.VIDEO, "videoMessage"),
        (MessageType.AUDIO, "audioMessage"),
        (MessageType.DOCUMENT, "documentMessage"),
        (MessageType.STICKER, "stickerMessage"),
    ],
)
def test_exactly_one_populated_key(message_type, key):
    message, wire_type = encode_message(
        OutboundContent(
            message_type=message_type,
            content="caption",
            file_url="https://cdn/file.bin",
            file_name="file.bin",
        )
    )
    assert list(message.keys()) == [key]
    assert wire_type == key
    assert message[key]["url"] == "https://cdn/file.bin"


@pytest.mark.parametrize("placeholder", ["[IMAGE]", "[VIDEO]", "[DOCUMENT]", "", "   ", None])
def test_placeholder_caption_omitted(placeholder):
    message, _ = encode_message(
        OutboundContent(
            message_type=MessageType.IMAGE,
            content=placeholder,
            file_url="https://cdn/p.png",
        )
    )
    assert "caption" not in message["imageMessage"]
    assert caption_for(placeholder) is None


def test_audio_never_carries_caption():
    message, _ = encode_message(
        OutboundContent(message_type=MessageType.AUDIO, content="voice", file_url="https://cdn/a.mp3")
    )
    assert "caption" not in message["audioMessage"]
    assert message["audioMessage"]["mimetype"] == "audio/mpeg"


def test_mime_from_caller_wins():
    message, _ = encode_message(
        OutboundContent(
            message_type=MessageType.DOCUMENT,
            file_url="https://cdn/report.pdf",
            mime_type="application/x-custom",
        )
    )
    assert message["documentMessage"]["mimetype"] == "application/x-custom"


def test_unknown_extension_leaves_mime_out():
    message, _ = encode_message(
        OutboundContent(message_type=MessageType.DOCUMENT, file_url="https://cdn/archive.xyz")
    )
    assert "mimetype" not in message["documentMessage"]


@pytest.mark.parametrize(
    "name,expected",
    [
        ("a.jpg", "image/jpeg"),
        ("a.JPEG", "image/jpeg"),
        ("a.png", "image/png"),
        ("a.gif", "image/gif"),
        ("a.webp", "image/webp"),
        ("a.mp4", "video/mp4"),
        ("a.mp3", "audio/mpeg"),
        ("a.ogg", "audio/ogg"),
        ("a.pdf", "application/pdf"),
        ("a.docx", None),
        ("noextension", None),
    ],
)
def test_infer_mime_type(name, expected):
    assert infer_mime_type(name) == expected


def test_infer_mime_type_from_url_with_query():
    assert infer_mime_type(None, "https://cdn/x/photo.png?sig=abc") == "image/png"


def test_image_round_trip():
    content = OutboundContent(
        message_type=MessageType.IMAGE,
        content="caption",
        file_url="https://cdn/pic.jpg",
        file_name="pic.jpg",
        mime_type="image/jpeg",
    )
    envelope = encode_envelope(content, remote_jid=JID, instance="shop-01")

    assert decode_envelope(envelope) == (MessageType.IMAGE, "caption")

    classified = classify_message(envelope["data"]["message"], external_id="X")
    assert classified.message_type == MessageType.IMAGE
    assert classified.content == "caption"
    assert classified.file_url == "https://cdn/pic.jpg"
    assert classified.file_name == "pic.jpg"
    assert classified.mime_type == "image/jpeg"


def test_gateway_request_text():
    request = encode_gateway_request(
        OutboundContent(message_type=MessageType.TEXT, content="Hello"), "5511999999999", "shop-01"
    )
    assert request.path == "/message/sendText/shop-01"
    assert request.body == {"number": "5511999999999", "text": "Hello"}


def test_gateway_request_media_and_audio():
    image = encode_gateway_request(
        OutboundContent(message_type=MessageType.IMAGE, content="[IMAGE]", file_url="https://cdn/i.png"),
        "551100",
        "shop-01",
    )
    assert image.path == "/message/sendMedia/shop-01"
    assert image.body["mediaMessage"] == {
        "mediatype": "image",
        "media": "https://cdn/i.png",
        "mimetype": "image/png",
    }

    document = encode_gateway_request(
        OutboundContent(message_type=MessageType.DOCUMENT, file_url="https://cdn/file"),
        "551100",
        "shop-01",
    )
    assert document.body["mediaMessage"]["fileName"] == "document"

    audio = encode_gateway_request(
        OutboundContent(message_type=MessageType.AUDIO, file_url="https://cdn/a.ogg"),
        "551100",
        "shop-01",
    )
    assert audio.path == "/message/sendWhatsAppAudio/shop-01"
    assert audio.body == {"number": "551100", "audioMessage": {"audio": "https://cdn/a.ogg"}}


def test_gateway_request_rejects_unsupported_type():
    with pytest.raises(ValueError):
        encode_gateway_request(
            OutboundContent(message_type=MessageType.LOCATION, content="x"), "551100", "shop-01"
        )


def test_every_sendable_type_has_a_wire_key():
    assert OUTBOUND_MESSAGE_TYPES <= set(WIRE_KEYS)
