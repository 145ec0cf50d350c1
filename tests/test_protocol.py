"""
Tests for peer wire messages.
"""

import json

import pytest

from monkey_relay.errors import MalformedMessage
from monkey_relay.protocol import (
    KeepaliveAck,
    KeepaliveMessage,
    MessageType,
    RegisterAck,
    ResultMessage,
    UnregisterAck,
    UnregisterMessage,
    build_execute,
    build_register,
    build_sync,
    parse_inbound,
)
from monkey_relay.registry import Capability


@pytest.fixture
def capability():
    return Capability(
        name="getTitle",
        description="Return the page title",
        target_pattern="*://example.com/*",
        payload="return document.title",
    )


class TestOutbound:
    """Test serialization of relay -> peer messages."""

    def test_sync_carries_full_definitions(self, capability):
        data = json.loads(build_sync([capability]).to_json())

        assert data == {
            "type": "sync",
            "capabilities": [
                {
                    "name": "getTitle",
                    "description": "Return the page title",
                    "targetPattern": "*://example.com/*",
                    "payload": "return document.title",
                }
            ],
        }

    def test_empty_sync(self):
        data = json.loads(build_sync([]).to_json())
        assert data == {"type": "sync", "capabilities": []}

    def test_register(self, capability):
        data = json.loads(build_register(capability).to_json())

        assert data["type"] == "register"
        assert data["name"] == "getTitle"
        assert data["targetPattern"] == "*://example.com/*"
        assert data["payload"] == "return document.title"

    def test_unregister(self):
        data = json.loads(UnregisterMessage(name="getTitle").to_json())
        assert data == {"type": "unregister", "name": "getTitle"}

    def test_execute_with_args(self, capability):
        data = json.loads(build_execute("req_1", capability, '{"n": 1}').to_json())

        assert data == {
            "type": "execute",
            "requestId": "req_1",
            "name": "getTitle",
            "payload": "return document.title",
            "targetPattern": "*://example.com/*",
            "args": '{"n": 1}',
        }

    @pytest.mark.parametrize("args", [None, ""])
    def test_execute_omits_missing_args(self, capability, args):
        data = json.loads(build_execute("req_1", capability, args).to_json())
        assert "args" not in data

    def test_keepalive(self):
        assert json.loads(KeepaliveMessage().to_json()) == {"type": "keepalive"}


class TestParseInbound:
    """Test parsing of peer -> relay frames."""

    def test_result_with_value(self):
        message = parse_inbound('{"type": "result", "requestId": "req_1", "value": {"a": 1}}')

        assert isinstance(message, ResultMessage)
        assert message.type == MessageType.RESULT
        assert message.request_id == "req_1"
        assert message.value == {"a": 1}
        assert not message.is_error

    def test_result_with_null_value_is_success(self):
        message = parse_inbound('{"type": "result", "requestId": "req_1", "value": null}')

        assert message.value is None
        assert not message.is_error

    def test_result_with_error(self):
        message = parse_inbound('{"type": "result", "requestId": "req_1", "error": "boom"}')

        assert message.is_error
        assert message.error == "boom"

    def test_result_with_error_and_null_value(self):
        message = parse_inbound(
            '{"type": "result", "requestId": "req_1", "value": null, "error": "boom"}'
        )
        assert message.is_error

    def test_accepts_bytes(self):
        message = parse_inbound(b'{"type": "keepalive-ack"}')
        assert isinstance(message, KeepaliveAck)

    def test_acks(self):
        assert isinstance(parse_inbound('{"type": "register-ack", "name": "a"}'), RegisterAck)
        assert isinstance(parse_inbound('{"type": "unregister-ack", "name": "a"}'), UnregisterAck)

    def test_unknown_fields_are_tolerated(self):
        message = parse_inbound(
            '{"type": "result", "requestId": "req_1", "value": 1, "tabId": 7}'
        )
        assert message.value == 1

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            '"result"',
            "{}",
            '{"type": "bogus"}',
            '{"type": "execute", "requestId": "r", "name": "n"}',
            '{"type": "result", "value": 1}',
            '{"type": "result", "requestId": "req_1"}',
            '{"type": "result", "requestId": "req_1", "value": 1, "error": "boom"}',
            '{"type": "result", "requestId": "req_1", "error": 5}',
        ],
    )
    def test_malformed_frames(self, raw):
        with pytest.raises(MalformedMessage):
            parse_inbound(raw)

    def test_malformed_message_keeps_raw_frame(self):
        with pytest.raises(MalformedMessage) as exc_info:
            parse_inbound('{"type": "bogus"}')

        assert exc_info.value.raw == '{"type": "bogus"}'
        assert "bogus" in exc_info.value.reason
