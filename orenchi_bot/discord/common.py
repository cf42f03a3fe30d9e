from __future__ import annotations

from typing import Any, Iterable


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[:limit].rstrip() + "..."


def chunk_text(text: str, limit: int = 1900) -> list[str]:
    if len(text) <= limit:
        return [text]
    parts: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        if len(current) + len(line) <= limit:
            current += line
            continue
        if current:
            parts.append(current)
            current = ""
        if len(line) <= limit:
            current = line
        else:
            for i in range(0, len(line), limit):
                parts.append(line[i : i + limit])
    if current:
        parts.append(current)
    return parts


def mentioned_user_ids(message: Any) -> list[int]:
    return [user.id for user in getattr(message, "mentions", None) or []]


def is_directed_to_others(message: Any, bot_user_id: int) -> bool:
    """True when the message mentions people, none of whom is the bot."""
    ids = mentioned_user_ids(message)
    if not ids:
        return False
    return bot_user_id not in ids


def should_process_public_message(message: Any, bot_user_id: int, respond_to_no_mention: bool = False) -> bool:
    ids = mentioned_user_ids(message)
    if bot_user_id in ids:
        return True
    if not ids:
        return respond_to_no_mention
    return False


def conversation_members(author: Any, mentioned: Iterable[Any], bot_user_id: int) -> list[Any]:
    """Author first, then mentioned users, without the bot and without duplicates."""
    members = [author]
    seen = {author.id}
    for user in mentioned:
        if user.id == bot_user_id or user.id in seen:
            continue
        seen.add(user.id)
        members.append(user)
    return members


def mention_list(users: Iterable[Any], separator: str = " ") -> str:
    return separator.join(f"<@{user.id}>" for user in users)
