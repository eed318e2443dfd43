"""Parsing of Cohere chat replies."""

from __future__ import annotations

import pytest

from moodboard_curator.cohere_utils import (
    CohereClient,
    _extract_json_block,
    _extract_query_list,
    extract_style_intent,
    make_client,
)

from .conftest import FakeCohereClient


def test_query_list_shapes():
    assert _extract_query_list('["a b", " c "]') == ["a b", "c"]
    assert _extract_query_list('```json\n{"queries": ["x"]}\n```') == ["x"]
    assert _extract_query_list('Here you go: ["x", "y"] enjoy') == ["x", "y"]


@pytest.mark.parametrize(
    "reply",
    ["", "no json here", '{"items": ["x"]}', '["x", ""]', '["x", 3]', '"just a string"'],
)
def test_query_list_rejects_bad_shapes(reply):
    with pytest.raises(ValueError):
        _extract_query_list(reply)


def test_json_block_from_chatty_reply():
    assert _extract_json_block('Sure! {"event": "dinner"} Hope that helps.') == {"event": "dinner"}
    with pytest.raises(ValueError):
        _extract_json_block("[1, 2]")


def test_style_intent_is_normalized():
    client = FakeCohereClient('{"event": " dinner ", "gender": "Men\'s", "items": "jacket"}')
    intent = extract_style_intent(client, query_text="dinner for him", model="m")

    assert intent == {"event": "dinner", "mood": "", "style": "", "gender": "men", "items": []}


def test_unknown_gender_becomes_unisex():
    client = FakeCohereClient('{"gender": "everyone", "items": ["a", "b", "c", "d", "e", "f", "g"]}')
    intent = extract_style_intent(client, query_text="x", model="m")
    assert intent["gender"] == "unisex"
    assert len(intent["items"]) == 6


def test_chat_text_joins_content_chunks():
    payload = {"message": {"content": [{"type": "text", "text": "one"}, {"type": "text", "text": "two"}]}}
    assert CohereClient._extract_chat_text(payload) == "one\ntwo"
    assert CohereClient._extract_chat_text({"message": {"content": " plain "}}) == "plain"
    assert CohereClient._extract_chat_text({}) == ""


def test_make_client_requires_key(curator_config):
    with pytest.raises(RuntimeError):
        make_client(curator_config)
