# src/lifecycle_tasks/worker/messages.py

from __future__ import annotations

"""
Control-message protocol between the parent (ProcessAdapter) and a worker.

Wire format: one JSON object per line (UTF-8). Every message has a "type"; everything
except the handshake carries the integer "id" of the request it belongs to, so a
response can never be matched to the wrong call.

    parent -> worker: start(id, args), stop(id)
    worker -> parent: ready(pid), load-error(kind, reason),
                      result(id, value), error(id, reason),
                      stopped(id), stop-error(id, reason)
"""

import json
import traceback
from enum import StrEnum
from typing import Any

from ..core.errors import ProtocolError
from ..core.ports import Message


class MessageType(StrEnum):
    READY = "ready"
    LOAD_ERROR = "load-error"
    START = "start"
    STOP = "stop"
    RESULT = "result"
    ERROR = "error"
    STOPPED = "stopped"
    STOP_ERROR = "stop-error"


# One control message per line; both ends refuse longer lines.
MAX_LINE_BYTES = 16 * 1024 * 1024


def encode(message: Message) -> bytes:
    """
    Serialize one message to a newline-terminated line.

    Raises TypeError/ValueError for payloads JSON cannot represent (functions, handles,
    NaN, ...). Nothing is written in that case. Size is checked separately, see
    check_size().
    """
    return (json.dumps(message, ensure_ascii=False, allow_nan=False) + "\n").encode("utf-8")


def decode(line: bytes | str) -> Message:
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"not JSON: {line[:200]!r}") from exc
    if not isinstance(obj, dict) or not isinstance(obj.get("type"), str):
        raise ProtocolError(f"not a control message: {line[:200]!r}")
    return obj


REASON_TEXT_LIMIT = 64 * 1024


def _clip(text: str) -> str:
    if len(text) <= REASON_TEXT_LIMIT:
        return text
    return text[:REASON_TEXT_LIMIT] + f"... [{len(text) - REASON_TEXT_LIMIT} chars truncated]"


def describe_exception(exc: BaseException) -> dict[str, str]:
    """Turn an exception into the `reason` payload of error/stop-error/load-error."""
    return {
        "type": type(exc).__name__,
        "message": _clip(str(exc)),
        "traceback": _clip("".join(traceback.format_exception(type(exc), exc, exc.__traceback__))),
    }


# ---- builders ----

def ready(pid: int) -> Message:
    return {"type": MessageType.READY.value, "pid": pid}


def load_error(kind: str, reason: dict[str, str]) -> Message:
    return {"type": MessageType.LOAD_ERROR.value, "kind": kind, "reason": reason}


def start(request_id: int, args: list[Any]) -> Message:
    return {"type": MessageType.START.value, "id": request_id, "args": list(args)}


def stop(request_id: int) -> Message:
    return {"type": MessageType.STOP.value, "id": request_id}


def result(request_id: int, value: Any) -> Message:
    return {"type": MessageType.RESULT.value, "id": request_id, "value": value}


def error(request_id: int, exc: BaseException) -> Message:
    return {"type": MessageType.ERROR.value, "id": request_id, "reason": describe_exception(exc)}


def stopped(request_id: int) -> Message:
    return {"type": MessageType.STOPPED.value, "id": request_id}


def stop_error(request_id: int, exc: BaseException) -> Message:
    return {
        "type": MessageType.STOP_ERROR.value,
        "id": request_id,
        "reason": describe_exception(exc),
    }


def check_size(line: bytes) -> bytes:
    """Raise ValueError for a line the other end of the channel would refuse to read."""
    if len(line) > MAX_LINE_BYTES:
        raise ValueError(f"control message is {len(line)} bytes, over the {MAX_LINE_BYTES} byte limit")
    return line
