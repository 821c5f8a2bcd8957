"""Unit tests for Evolution API webhook parsing."""

import pytest

from reminder_engine.domain.value_objects.channel_state import ConnectionState
from reminder_engine.domain.value_objects.message import MessageStatus
from reminder_engine.infrastructure.messaging.webhook_parser import (
    event_name,
    extract_text,
    parse_connection,
    parse_inbound,
    parse_receipts,
)


def upsert(message, *, from_me=False, jid="595981123456@s.whatsapp.net", **data):
    return {
        "event": "messages.upsert",
        "instance": "clinic-main",
        "data": {
            "key": {"remoteJid": jid, "fromMe": from_me, "id": "3EB0A1"},
            "message": message,
            **data,
        },
    }


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("messages.upsert", "messages.upsert"),
        ("MESSAGES_UPSERT", "messages.upsert"),
        ("CONNECTION_UPDATE", "connection.update"),
        (None, ""),
    ],
)
def test_event_name(raw, expected):
    assert event_name({"event": raw}) == expected


class TestExtractText:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ({"conversation": "Sí"}, "Sí"),
            ({"extendedTextMessage": {"text": "Confirmo"}}, "Confirmo"),
            ({"imageMessage": {"caption": "mi receta"}}, "mi receta"),
            ({"audioMessage": {"seconds": 4}}, None),
            (None, None),
        ],
    )
    def test_extract_text(self, message, expected):
        assert extract_text(message) == expected


class TestParseInbound:
    """Tests for messages.upsert."""

    def test_patient_message(self):
        inbound = parse_inbound(upsert({"conversation": "Sí"}, messageTimestamp=1773140400), channel_id="ch-1")

        assert inbound.phone == "595981123456"
        assert inbound.text == "Sí"
        assert inbound.channel_id == "ch-1"
        assert inbound.external_message_id == "3EB0A1"
        assert inbound.timestamp is not None
        assert int(inbound.timestamp.timestamp()) == 1773140400

    def test_data_wrapped_in_list(self):
        payload = upsert({"conversation": "ok"})
        payload["data"] = [payload["data"]]

        assert parse_inbound(payload).text == "ok"

    def test_own_message_is_ignored(self):
        assert parse_inbound(upsert({"conversation": "Hola"}, from_me=True)) is None

    def test_group_message_is_ignored(self):
        assert parse_inbound(upsert({"conversation": "Hola"}, jid="12036302@g.us")) is None

    def test_non_text_message_is_ignored(self):
        assert parse_inbound(upsert({"stickerMessage": {}})) is None

    def test_invalid_timestamp(self):
        inbound = parse_inbound(upsert({"conversation": "Sí"}, messageTimestamp="soon"))
        assert inbound.timestamp is None


class TestParseReceipts:
    """Tests for messages.update."""

    def test_list_of_updates(self):
        payload = {
            "event": "messages.update",
            "instance": "clinic-main",
            "data": [
                {"keyId": "wamid-1", "status": "DELIVERY_ACK"},
                {"key": {"id": "wamid-2"}, "update": {"status": "READ"}},
                {"keyId": "wamid-3", "status": "UNKNOWN"},
                "garbage",
            ],
        }

        receipts = parse_receipts(payload)

        assert [(r.external_message_id, r.status) for r in receipts] == [
            ("wamid-1", MessageStatus.DELIVERED),
            ("wamid-2", MessageStatus.READ),
        ]
        assert receipts[0].instance == "clinic-main"

    def test_single_update(self):
        receipts = parse_receipts({"event": "messages.update", "data": {"keyId": "wamid-9", "status": "ERROR"}})

        assert len(receipts) == 1
        assert receipts[0].status == MessageStatus.FAILED

    def test_missing_data(self):
        assert parse_receipts({"event": "messages.update"}) == []


class TestParseConnection:
    @pytest.mark.parametrize(
        "state,expected",
        [
            ("open", ConnectionState.CONNECTED),
            ("connecting", ConnectionState.CONNECTING),
            ("close", ConnectionState.DISCONNECTED),
        ],
    )
    def test_states(self, state, expected):
        update = parse_connection({"event": "connection.update", "instance": "clinic-main", "data": {"state": state}})

        assert update.instance == "clinic-main"
        assert update.state == expected

    def test_instance_from_data(self):
        update = parse_connection({"event": "connection.update", "data": {"instance": "clinic-2", "state": "open"}})
        assert update.instance == "clinic-2"

    def test_missing_instance(self):
        assert parse_connection({"event": "connection.update", "data": {"state": "open"}}) is None
