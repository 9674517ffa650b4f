# =====================================================================
# alertmanager2hangoutschat Payload Model Unit Tests
# =====================================================================
# Tests for models.py
# Run with: pytest tests/test_models.py -v
# =====================================================================

import json

import pytest
from werkzeug.datastructures import ImmutableMultiDict

from alertmanager2hangoutschat.errors import DecodeError
from alertmanager2hangoutschat.models import (
    KV,
    AlertList,
    ChatEnvelope,
    Pair,
    RenderModel,
    decode_payload,
)


pytestmark = pytest.mark.unit


class TestDecodePayload:
    """Test decoding of Alertmanager webhook bodies"""

    def test_decodes_camel_case_fields(self, firing_payload):
        """Test JSON keys map onto the template field names"""
        payload = decode_payload(json.dumps(firing_payload).encode())

        assert payload.Status == "firing"
        assert payload.Receiver == "hangouts"
        assert len(payload.Alerts) == 1
        alert = payload.Alerts[0]
        assert alert.Labels["alertname"] == "HighCPU"
        assert alert.GeneratorURL == "http://p/g"

    def test_missing_collections_become_empty(self):
        """Test absent alerts, labels and annotations decode as empty"""
        payload = decode_payload(b'{"status": "firing", "alerts": [{"status": "firing"}]}')

        assert isinstance(payload.Alerts, AlertList)
        assert payload.CommonLabels == {}
        assert isinstance(payload.CommonLabels, KV)
        assert payload.Alerts[0].Labels == {}
        assert payload.Alerts[0].Annotations.SortedPairs == []

    def test_null_collections_become_empty(self):
        """Test explicit nulls are treated like absent fields"""
        payload = decode_payload(b'{"alerts": null, "groupLabels": null}')

        assert payload.Alerts == []
        assert payload.GroupLabels == {}

    def test_unknown_fields_ignored(self):
        """Test extra keys from newer Alertmanager versions are accepted"""
        payload = decode_payload(b'{"status": "resolved", "somethingNew": 1}')
        assert payload.Status == "resolved"

    def test_timestamps_kept_verbatim(self):
        """Test nanosecond timestamps survive decoding"""
        body = b'{"alerts": [{"startsAt": "2024-01-01T00:00:00.123456789Z"}]}'
        payload = decode_payload(body)
        assert payload.Alerts[0].StartsAt == "2024-01-01T00:00:00.123456789Z"

    @pytest.mark.parametrize("body", [b"{", b"", b"not json", b'{"alerts": "nope"}'])
    def test_invalid_body_raises_decode_error(self, body):
        """Test malformed bodies raise DecodeError"""
        with pytest.raises(DecodeError) as exc_info:
            decode_payload(body)
        assert exc_info.value.kind == "decode"


class TestKV:
    """Test label/annotation helpers"""

    def test_sorted_pairs_ordered_by_name(self):
        """Test SortedPairs is sorted by key"""
        kv = KV({"summary": "cpu high", "runbook": "wiki/cpu", "a": "1"})

        assert kv.SortedPairs == [
            Pair("a", "1"),
            Pair("runbook", "wiki/cpu"),
            Pair("summary", "cpu high"),
        ]

    def test_names_and_values(self):
        kv = KV({"b": "2", "a": "1"})
        assert kv.Names == ["a", "b"]
        assert kv.Values == ["1", "2"]

    def test_remove_returns_new_kv(self):
        """Test Remove drops keys without mutating the original"""
        kv = KV({"alertname": "X", "instance": "i", "job": "j"})
        trimmed = kv.Remove(["instance", "job"])

        assert trimmed == {"alertname": "X"}
        assert isinstance(trimmed, KV)
        assert "instance" in kv


class TestAlertList:
    """Test firing/resolved views"""

    def test_views_preserve_input_order(self, mixed_payload):
        payload = decode_payload(json.dumps(mixed_payload).encode())

        firing = [a.Labels["alertname"] for a in payload.Alerts.Firing]
        resolved = [a.Labels["alertname"] for a in payload.Alerts.Resolved]

        assert firing == ["DiskFull", "HighLatency"]
        assert resolved == ["NodeDown"]

    def test_unknown_status_in_neither_view(self):
        payload = decode_payload(b'{"alerts": [{"status": "pending"}]}')
        assert payload.Alerts.Firing == []
        assert payload.Alerts.Resolved == []


class TestRenderModel:
    """Test the template root value"""

    def test_build_adds_query_params(self, firing_payload):
        payload = decode_payload(json.dumps(firing_payload).encode())
        query = ImmutableMultiDict([("url", "http://mock/webhook"), ("env", "prod")])

        model = RenderModel.build(payload, query)

        assert model.QueryParams.Get("env") == "prod"
        assert model.QueryParams.Get("missing") == ""
        assert model.Status == "firing"
        assert isinstance(model.Alerts, AlertList)

    def test_context_exposes_top_level_names(self, firing_payload):
        payload = decode_payload(json.dumps(firing_payload).encode())
        context = RenderModel.build(payload, {}).context()

        for name in ("Status", "Alerts", "CommonLabels", "ExternalURL", "QueryParams"):
            assert name in context

    def test_first_value_wins_for_repeated_params(self):
        payload = decode_payload(b"{}")
        query = ImmutableMultiDict([("env", "prod"), ("env", "dev")])

        model = RenderModel.build(payload, query)

        assert model.QueryParams.Get("env") == "prod"


class TestChatEnvelope:
    """Test the outbound message body"""

    def test_single_text_field(self):
        body = json.loads(ChatEnvelope(text="hello").to_bytes())
        assert body == {"text": "hello"}

    def test_escapes_and_unicode(self):
        """Test quotes, newlines and non-ASCII survive serialisation"""
        text = 'line "1"\nline 2 ✓'
        body = ChatEnvelope(text=text).to_bytes()

        assert isinstance(body, bytes)
        assert json.loads(body.decode("utf-8"))["text"] == text
