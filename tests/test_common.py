from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orenchi_bot.discord.common import (  # noqa: E402
    chunk_text,
    conversation_members,
    is_directed_to_others,
    mention_list,
    should_process_public_message,
    truncate,
)

BOT_ID = 999


def _user(user_id: int) -> SimpleNamespace:
    return SimpleNamespace(id=user_id)


def _message(*mentioned: int) -> SimpleNamespace:
    return SimpleNamespace(mentions=[_user(user_id) for user_id in mentioned])


@pytest.mark.parametrize(
    ("mentioned", "no_mention_flag", "expected"),
    [
        ((BOT_ID,), False, True),
        ((BOT_ID, 5), False, True),
        ((5,), True, False),
        ((5, 6), False, False),
        ((), True, True),
        ((), False, False),
    ],
)
def test_public_message_routing(mentioned: tuple[int, ...], no_mention_flag: bool, expected: bool) -> None:
    assert should_process_public_message(_message(*mentioned), BOT_ID, no_mention_flag) is expected


def test_directed_to_others() -> None:
    assert is_directed_to_others(_message(5), BOT_ID)
    assert not is_directed_to_others(_message(5, BOT_ID), BOT_ID)
    assert not is_directed_to_others(_message(), BOT_ID)


def test_members_start_with_author_and_skip_bot_and_duplicates() -> None:
    author = _user(1)
    members = conversation_members(author, [_user(BOT_ID), _user(2), _user(1), _user(2), _user(3)], BOT_ID)

    assert [member.id for member in members] == [1, 2, 3]
    assert mention_list(members) == "<@1> <@2> <@3>"


def test_truncate_marks_cut_text() -> None:
    assert truncate("short", 100) == "short"
    assert truncate("x" * 150, 100) == "x" * 100 + "..."


def test_chunk_text_respects_limit() -> None:
    text = "\n".join("line %s" % index for index in range(600))
    chunks = chunk_text(text, 1900)

    assert all(len(chunk) <= 1900 for chunk in chunks)
    assert "".join(chunks) == text
    assert chunk_text("x" * 4000, 1900) == ["x" * 1900, "x" * 1900, "x" * 200]
