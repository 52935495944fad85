"""Client for the chat assistant reachable over a separate webhook.

The assistant is an external collaborator: one POST per user message, a
reply string pulled out of whatever JSON shape comes back, and failures turned
into a system message in the conversation rather than an exception.
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Literal, Mapping, Optional

import requests


logger = logging.getLogger(__name__)

REPLY_FIELDS = ("output", "reply", "message", "text")
DEFAULT_REPLY = "Respuesta recibida."
ERROR_REPLY = "Ha ocurrido un error al conectar con el asistente IA. Inténtalo de nuevo más tarde."

_BASE36 = string.digits + string.ascii_lowercase

Role = Literal["user", "assistant", "system"]


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_session_id() -> str:
    """Best-effort unique id: random part plus a millisecond timestamp."""
    random_part = "".join(random.choice(_BASE36) for _ in range(13))
    return f"session_{random_part}{to_base36(int(time.time() * 1000))}"


class SessionIdStore:
    """Session id created on first need and kept in a local file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._session_id: Optional[str] = None

    def get(self) -> str:
        if self._session_id:
            return self._session_id
        if self.path.exists():
            stored = self.path.read_text(encoding="utf-8").strip()
            if stored:
                self._session_id = stored
                return stored
        self._session_id = generate_session_id()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self._session_id, encoding="utf-8")
        except OSError:
            logger.warning("Could not persist chat session id to %s", self.path)
        return self._session_id


def _reply_from_object(obj: Mapping[str, Any]) -> Optional[str]:
    for name in REPLY_FIELDS:
        value = obj.get(name)
        if value:
            return str(value)
    return None


def extract_reply(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        if payload and isinstance(payload[0], Mapping):
            return _reply_from_object(payload[0]) or DEFAULT_REPLY
        return DEFAULT_REPLY
    if isinstance(payload, Mapping):
        return _reply_from_object(payload) or DEFAULT_REPLY
    return DEFAULT_REPLY


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


class Conversation:
    def __init__(
        self,
        session_id: str,
        url: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.session_id = session_id
        self.url = url
        self.timeout = timeout
        self._http = session or requests
        self.messages: List[ChatMessage] = []

    def _request_reply(self, text: str) -> str:
        response = self._http.post(
            self.url,
            json={"sessionId": self.session_id, "userMessage": text},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return extract_reply(response.json())

    def send(self, text: str) -> Optional[ChatMessage]:
        """Send one message; returns the reply (or error notice) appended, None for blank input."""
        trimmed = (text or "").strip()
        if not trimmed:
            return None
        self.messages.append(ChatMessage(role="user", text=trimmed))
        try:
            reply = ChatMessage(role="assistant", text=self._request_reply(trimmed))
        except (requests.RequestException, ValueError):
            logger.exception("Assistant request failed")
            reply = ChatMessage(role="system", text=ERROR_REPLY)
        self.messages.append(reply)
        return reply
