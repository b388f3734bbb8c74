"""Shared test helpers for t3 viewer tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

import json

from t3_export import Message, parse_timestamp


def message_record(
    msg_id: str = "m-1",
    thread_id: str = "t-1",
    created_at: str = "2024-01-01T10:15:00Z",
    role: str = "user",
    content: str = "hello",
    status: str = "done",
) -> dict:
    """Build a message dict in export format."""
    return {
        "id": msg_id,
        "threadId": thread_id,
        "content": content,
        "created_at": created_at,
        "role": role,
        "status": status,
        "model": "gpt-4o",
        "modelParams": None,
        "attachments": None,
    }


def thread_record(
    thread_id: str = "t-1",
    title: str = "First thread",
    created_at: str = "2024-01-01T10:00:00Z",
) -> dict:
    """Build a thread dict in export format."""
    return {
        "title": title,
        "user_edited_title": False,
        "status": "done",
        "model": "gpt-4o",
        "id": thread_id,
        "created_at": created_at,
        "updated_at": None,
        "last_message_at": created_at,
    }


def make_export(
    threads: list[dict] | None = None,
    messages: list[dict] | None = None,
) -> dict:
    """Build a whole export document dict (one thread, two messages by default)."""
    if threads is None:
        threads = [thread_record()]
    if messages is None:
        messages = [
            message_record("m-1", created_at="2024-01-01T10:15:00Z", role="user"),
            message_record("m-2", created_at="2024-01-03T18:40:00Z", role="assistant", content="hi there"),
        ]
    return {"threads": threads, "messages": messages}


def export_bytes(data: dict | None = None) -> bytes:
    return json.dumps(data if data is not None else make_export()).encode("utf-8")


def make_message(created_at: str, msg_id: str = "m") -> Message:
    """Build a ``Message`` with the given ISO timestamp."""
    return Message(
        id=msg_id,
        thread_id="t-1",
        content="x",
        created_at=parse_timestamp(created_at),
        role="user",
        status="done",
        model="gpt-4o",
    )


def make_messages(*timestamps: str) -> list[Message]:
    return [make_message(ts, f"m-{i}") for i, ts in enumerate(timestamps)]
