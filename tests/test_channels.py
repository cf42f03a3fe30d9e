from __future__ import annotations

import asyncio
import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

discord = pytest.importorskip("discord")

import orenchi_bot.discord.channels as channels_mod  # noqa: E402
from orenchi_bot.discord.channels import (  # noqa: E402
    RENAMED_MARKER,
    SUFFIX_ALPHABET,
    WELCOME_MESSAGE_SUFFIX,
    ChannelLifecycleManager,
    sanitize_seed,
)

NOW = datetime.now(timezone.utc)


class _Member:
    def __init__(self, user_id: int, name: str, *, bot: bool = False) -> None:
        self.id = user_id
        self.name = name
        self.bot = bot


class _Channel:
    def __init__(
        self,
        name: str,
        *,
        messages: list[Any] | None = None,
        created_at: datetime | None = None,
        history_error: Exception | None = None,
        delete_error: Exception | None = None,
    ) -> None:
        self.id = abs(hash(name)) % 10_000
        self.name = name
        self.messages = messages or []
        self.created_at = created_at or NOW
        self.history_error = history_error
        self.delete_error = delete_error
        self.sent: list[str] = []
        self.deleted = False

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"

    def history(self, limit: int = 100) -> Any:
        return self._history(limit)

    async def _history(self, limit: int) -> Any:
        if self.history_error is not None:
            raise self.history_error
        for message in self.messages[:limit]:
            yield message

    async def send(self, content: str) -> None:
        self.sent.append(content)

    async def delete(self, reason: str | None = None) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted = True

    async def edit(self, *, name: str) -> None:
        self.name = name


class _Role:
    def __init__(self, role_id: int) -> None:
        self.id = role_id


class _Guild:
    def __init__(self, text_channels: list[_Channel] | None = None) -> None:
        self.id = 1
        self.default_role = _Role(1)
        self.text_channels = text_channels or []
        self.created: list[tuple[str, dict[Any, Any]]] = []

    async def create_text_channel(self, name: str, *, overwrites: dict[Any, Any]) -> _Channel:
        self.created.append((name, overwrites))
        channel = _Channel(name)
        self.text_channels.append(channel)
        return channel


def _msg(author: _Member, content: str, age: timedelta = timedelta()) -> SimpleNamespace:
    return SimpleNamespace(author=author, content=content, created_at=NOW - age)


class _FakeSummarizer:
    def __init__(self, title: str) -> None:
        self.title = title
        self.turns: list[Any] = []

    async def summarize(self, turns: list[Any]) -> str:
        self.turns = list(turns)
        return self.title


def test_generate_name_layout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(channels_mod.time, "time", lambda: 1_700_000_000.7)
    name = ChannelLifecycleManager().generate_name("Alice B!")

    match = re.fullmatch(r"ai-chat-1700000000-Alice-B--(.{4})", name)
    assert match is not None
    assert all(char in SUFFIX_ALPHABET for char in match.group(1))


def test_names_differ_within_the_same_second(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(channels_mod.time, "time", lambda: 1_700_000_000.0)
    lifecycle = ChannelLifecycleManager()

    names = {lifecycle.generate_name("alice") for _ in range(50)}

    assert len(names) == 50


def test_create_twice_with_same_inputs_gives_distinct_channels(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(channels_mod.time, "time", lambda: 1_700_000_000.0)
    guild = _Guild()
    alice = _Member(1, "alice")
    lifecycle = ChannelLifecycleManager()

    first = asyncio.run(lifecycle.create(guild, [alice], bot_id=99))
    second = asyncio.run(lifecycle.create(guild, [alice], bot_id=99))

    assert first.name != second.name


def test_seed_is_sanitized_and_truncated() -> None:
    assert sanitize_seed("héllo wörld and more") == "h-llo-w-rl"
    assert sanitize_seed("bob_99") == "bob_99"


def test_managed_and_renamed_checks() -> None:
    lifecycle = ChannelLifecycleManager()

    assert lifecycle.is_managed_channel("ai-chat-1-bob-abcd")
    assert not lifecycle.is_managed_channel("general")
    assert not lifecycle.is_managed_channel("x-ai-chat-1-bob")
    assert not lifecycle.is_renamed(lifecycle.generate_name("bob"))
    assert lifecycle.is_renamed(f"ai-chat-1-{RENAMED_MARKER}trip-abcd")


def test_find_by_owner_matches_both_layouts_case_insensitively() -> None:
    lifecycle = ChannelLifecycleManager()
    other = _Channel("ai-chat-1700000000-alicex-abcd")
    current = _Channel("ai-chat-1700000000-alice-abcd")
    legacy = _Channel("ai-chat-alice-wxyz")

    assert lifecycle.find_by_owner([_Channel("general"), other, current], "Alice") is current
    assert lifecycle.find_by_owner([legacy, current], "alice") is legacy
    assert lifecycle.find_by_owner([other], "alice") is None


def test_create_sets_overwrites_and_welcome() -> None:
    guild = _Guild()
    alice = _Member(1, "alice")
    bob = _Member(2, "bob")

    channel = asyncio.run(ChannelLifecycleManager().create(guild, [alice, bob], bot_id=99))

    assert len(guild.created) == 1
    name, overwrites = guild.created[0]
    assert name.startswith("ai-chat-") and "-alice-" in name
    assert overwrites[guild.default_role].view_channel is False
    for member in (alice, bob):
        assert overwrites[member].view_channel is True
        assert overwrites[member].send_messages is True
        assert overwrites[member].read_message_history is True
    bot_overwrite = [value for key, value in overwrites.items() if getattr(key, "id", None) == 99][0]
    assert bot_overwrite.manage_channels is True
    assert channel.sent == [
        f"Hello <@1>, <@2>! This is your private chat channel with the AI assistant. {WELCOME_MESSAGE_SUFFIX}"
    ]


def test_create_with_seed_message_only_sends_question() -> None:
    guild = _Guild()

    channel = asyncio.run(ChannelLifecycleManager().create(guild, [_Member(1, "alice")], seed_message="why is the sky blue?"))

    assert channel.sent == ["Q: why is the sky blue?"]
    assert len(guild.created[0][1]) == 2


def test_delete_swallows_errors() -> None:
    lifecycle = ChannelLifecycleManager()
    ok = _Channel("ai-chat-1-a-abcd")
    broken = _Channel("ai-chat-1-b-abcd", delete_error=RuntimeError("missing access"))

    assert asyncio.run(lifecycle.delete(ok)) is True
    assert asyncio.run(lifecycle.delete(broken)) is False
    assert ok.deleted


def test_inactivity_uses_last_message_then_creation_time() -> None:
    lifecycle = ChannelLifecycleManager()
    alice = _Member(1, "alice")
    threshold = timedelta(hours=24)

    stale = _Channel("ai-chat-1-a-abcd", messages=[_msg(alice, "old", timedelta(hours=25))])
    fresh = _Channel("ai-chat-1-a-efgh", messages=[_msg(alice, "new", timedelta(minutes=5))], created_at=NOW - timedelta(days=3))
    empty_old = _Channel("ai-chat-1-a-ijkl", created_at=NOW - timedelta(hours=30))
    broken = _Channel("ai-chat-1-a-mnop", history_error=RuntimeError("forbidden"), created_at=NOW - timedelta(days=9))

    assert asyncio.run(lifecycle.is_inactive(stale, threshold)) is True
    assert asyncio.run(lifecycle.is_inactive(fresh, threshold)) is False
    assert asyncio.run(lifecycle.is_inactive(empty_old, threshold)) is True
    assert asyncio.run(lifecycle.is_inactive(broken, threshold)) is False


def test_cleanup_sweeps_managed_channels_and_survives_failures() -> None:
    alice = _Member(1, "alice")
    old = timedelta(hours=48)
    stale = _Channel("ai-chat-1-a-aaaa", messages=[_msg(alice, "x", old)])
    undeletable = _Channel("ai-chat-1-a-bbbb", messages=[_msg(alice, "x", old)], delete_error=RuntimeError("gone"))
    active = _Channel("ai-chat-1-a-cccc", messages=[_msg(alice, "x")])
    unmanaged = _Channel("general", messages=[_msg(alice, "x", old)])
    stale_too = _Channel("ai-chat-1-a-dddd", created_at=NOW - old)
    guild = _Guild([stale, undeletable, active, unmanaged, stale_too])

    deleted = asyncio.run(ChannelLifecycleManager().cleanup_inactive(guild, timedelta(hours=24)))

    assert deleted == 2
    assert stale.deleted and stale_too.deleted
    assert not active.deleted and not unmanaged.deleted


def test_rename_with_summary_uses_chronological_turns(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(channels_mod.time, "time", lambda: 1_700_000_123.0)
    bot = _Member(99, "orenchi", bot=True)
    alice = _Member(1, "alice")
    channel = _Channel(
        "ai-chat-1700000000-alice-abcd",
        messages=[_msg(bot, "Sure, Kyoto it is."), _msg(alice, "Plan a trip to Kyoto")],
    )
    summarizer = _FakeSummarizer("kyoto-trip")

    new_name = asyncio.run(ChannelLifecycleManager().rename_with_summary(channel, summarizer, bot_user_id=99))

    assert re.fullmatch(rf"ai-chat-1700000123-{RENAMED_MARKER}kyoto-trip-.{{4}}", new_name)
    assert channel.name == new_name
    assert [(turn.role, turn.content) for turn in summarizer.turns] == [
        ("user", "Plan a trip to Kyoto"),
        ("assistant", "Sure, Kyoto it is."),
    ]


def test_rename_failure_propagates() -> None:
    class _ReadOnlyChannel(_Channel):
        async def edit(self, *, name: str) -> None:
            raise RuntimeError("missing permissions")

    channel = _ReadOnlyChannel("ai-chat-1-alice-abcd")

    with pytest.raises(RuntimeError):
        asyncio.run(ChannelLifecycleManager().rename_with_summary(channel, _FakeSummarizer("x")))
