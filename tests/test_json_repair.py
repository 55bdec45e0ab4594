from __future__ import annotations

import pytest

from oracles.json_repair import parse_json_reply
from utils.exceptions import MalformedOracleOutput


def test_fenced_reply() -> None:
    assert parse_json_reply('Here you go:\n```json\n{"a": 1}\n```') == {"a": 1}


def test_chatter_around_object() -> None:
    assert parse_json_reply('Sure! {"a": [1, 2]} Hope this helps.') == {"a": [1, 2]}


def test_top_level_list() -> None:
    assert parse_json_reply('[{"x": 1}]') == [{"x": 1}]


def test_truncated_reply_is_closed() -> None:
    assert parse_json_reply('{"a": [1, 2') == {"a": [1, 2]}
    assert parse_json_reply('{"a": "hel') == {"a": "hel"}


@pytest.mark.parametrize("text", ["", "   ", "no json in here at all"])
def test_unrecoverable_replies_raise(text) -> None:
    with pytest.raises(MalformedOracleOutput):
        parse_json_reply(text)


def test_repetition_loop_is_rejected() -> None:
    with pytest.raises(MalformedOracleOutput, match="repetition"):
        parse_json_reply('{"points": "' + "market " * 40 + '"}')
