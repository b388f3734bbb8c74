"""Load and navigate t3.chat JSON export documents.

An export is a single JSON object with two flat arrays, ``threads`` and
``messages``; each message points at its thread through ``threadId``.
Parsing is strict: a document that does not match the schema raises
``ExportFormatError`` instead of being partially loaded, so every
``Message`` handed to the chart code carries a valid UTC timestamp.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

THREAD_STATUSES = ("done",)
MESSAGE_ROLES = ("user", "assistant")
MESSAGE_STATUSES = ("done", "deleted", "error")

TITLE_DISPLAY_LIMIT = 80
CONTENT_DISPLAY_LIMIT = 500


class ExportFormatError(ValueError):
    """Raised when a document is not a valid t3.chat export."""


@dataclass(frozen=True)
class Thread:
    id: str
    title: str
    user_edited_title: bool
    status: str
    model: str
    created_at: datetime
    last_message_at: datetime
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Message:
    id: str
    thread_id: str
    content: str
    created_at: datetime
    role: str
    status: str
    model: str
    model_params: Any = None
    attachments: list | None = None


@dataclass
class ExportDocument:
    threads: list[Thread] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)

    def thread(self, thread_id: str) -> Thread | None:
        return next((t for t in self.threads if t.id == thread_id), None)

    def message(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    def messages_for(self, thread_id: str) -> list[Message]:
        """Messages belonging to *thread_id*, in document order."""
        return [m for m in self.messages if m.thread_id == thread_id]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_timestamp(value: object) -> datetime:
    """Parse an ISO 8601 timestamp with an explicit offset into UTC.

    Args:
        value: A string such as ``"2024-01-01T10:15:00Z"`` or
            ``"2024-01-01T12:15:00.123+02:00"``.

    Returns:
        A timezone-aware datetime converted to UTC.

    Raises:
        ExportFormatError: If *value* is not a string, cannot be parsed, or
            carries no UTC offset.
    """
    if not isinstance(value, str):
        raise ExportFormatError(f"Expected timestamp string, got {type(value).__name__}")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ExportFormatError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        raise ExportFormatError(f"Timestamp has no UTC offset: {value!r}")
    return parsed.astimezone(timezone.utc)


def _require(record: dict, key: str, kind: type | tuple[type, ...], where: str) -> Any:
    if key not in record:
        raise ExportFormatError(f"{where}: missing field '{key}'")
    value = record[key]
    if not isinstance(value, kind):
        raise ExportFormatError(f"{where}: field '{key}' has wrong type {type(value).__name__}")
    return value


def _require_choice(record: dict, key: str, choices: tuple[str, ...], where: str) -> str:
    value = _require(record, key, str, where)
    if value not in choices:
        raise ExportFormatError(f"{where}: unknown {key} {value!r}")
    return value


def _timestamp_field(record: dict, key: str, where: str, optional: bool = False) -> datetime | None:
    value = record.get(key)
    if value is None:
        if optional:
            return None
        raise ExportFormatError(f"{where}: missing field '{key}'")
    try:
        return parse_timestamp(value)
    except ExportFormatError as exc:
        raise ExportFormatError(f"{where}: {exc}") from exc


def _parse_thread(record: object, index: int) -> Thread:
    where = f"threads[{index}]"
    if not isinstance(record, dict):
        raise ExportFormatError(f"{where}: expected object")
    return Thread(
        id=_require(record, "id", str, where),
        title=_require(record, "title", str, where),
        user_edited_title=_require(record, "user_edited_title", bool, where),
        status=_require_choice(record, "status", THREAD_STATUSES, where),
        model=_require(record, "model", str, where),
        created_at=_timestamp_field(record, "created_at", where),
        updated_at=_timestamp_field(record, "updated_at", where, optional=True),
        last_message_at=_timestamp_field(record, "last_message_at", where),
    )


def _parse_message(record: object, index: int) -> Message:
    where = f"messages[{index}]"
    if not isinstance(record, dict):
        raise ExportFormatError(f"{where}: expected object")
    attachments = record.get("attachments")
    if attachments is not None and not isinstance(attachments, list):
        raise ExportFormatError(f"{where}: field 'attachments' has wrong type")
    return Message(
        id=_require(record, "id", str, where),
        thread_id=_require(record, "threadId", str, where),
        content=_require(record, "content", str, where),
        created_at=_timestamp_field(record, "created_at", where),
        role=_require_choice(record, "role", MESSAGE_ROLES, where),
        status=_require_choice(record, "status", MESSAGE_STATUSES, where),
        model=_require(record, "model", str, where),
        model_params=record.get("modelParams"),
        attachments=attachments,
    )


def parse_export(data: object) -> ExportDocument:
    """Build an ``ExportDocument`` from decoded export JSON.

    Args:
        data: The decoded top-level JSON value.  Must be an object with
            ``threads`` and ``messages`` arrays.

    Returns:
        The parsed document, with threads and messages in file order.

    Raises:
        ExportFormatError: If any part of the document does not match the
            export schema.  The message names the offending record.
    """
    if not isinstance(data, dict):
        raise ExportFormatError("Export must be a JSON object")
    threads = _require(data, "threads", list, "export")
    messages = _require(data, "messages", list, "export")
    return ExportDocument(
        threads=[_parse_thread(t, i) for i, t in enumerate(threads)],
        messages=[_parse_message(m, i) for i, m in enumerate(messages)],
    )


def load_export_bytes(raw: bytes) -> ExportDocument:
    """Decode and parse an export held in memory.

    Raises:
        ExportFormatError: If *raw* is not UTF-8 JSON or not a valid export.
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ExportFormatError(f"Failed to parse JSON: {exc}") from exc
    document = parse_export(data)
    logger.info(
        "Parsed export: %d threads, %d messages",
        len(document.threads),
        len(document.messages),
    )
    return document


def load_export(path: str | Path) -> ExportDocument:
    """Load an export document from disk.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ExportFormatError: If the file is not a valid export.
    """
    logger.info("Attempting to parse export from %s", path)
    raw = Path(path).read_bytes()
    try:
        return load_export_bytes(raw)
    except ExportFormatError as exc:
        logger.warning("Failed to parse export %s: %s", path, exc)
        raise


# ---------------------------------------------------------------------------
# Serialisation and display helpers
# ---------------------------------------------------------------------------

def _isoformat(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    return ts.isoformat().replace("+00:00", "Z")


def thread_to_dict(thread: Thread) -> dict[str, Any]:
    return {
        "title": thread.title,
        "user_edited_title": thread.user_edited_title,
        "status": thread.status,
        "model": thread.model,
        "id": thread.id,
        "created_at": _isoformat(thread.created_at),
        "updated_at": _isoformat(thread.updated_at),
        "last_message_at": _isoformat(thread.last_message_at),
    }


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "threadId": message.thread_id,
        "content": message.content,
        "created_at": _isoformat(message.created_at),
        "role": message.role,
        "status": message.status,
        "model": message.model,
        "modelParams": message.model_params,
        "attachments": message.attachments,
    }


def thread_to_json(document: ExportDocument, thread: Thread) -> str:
    """Pretty-printed JSON of a thread and its messages, in export key names."""
    payload = {
        "thread": thread_to_dict(thread),
        "messages": [message_to_dict(m) for m in document.messages_for(thread.id)],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def display_title(title: str, limit: int = TITLE_DISPLAY_LIMIT) -> str:
    """Shorten long thread titles for list headers."""
    return _truncate(title, limit)


def truncate_content(text: str, limit: int = CONTENT_DISPLAY_LIMIT) -> str:
    """Shorten long message bodies for inline display."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
