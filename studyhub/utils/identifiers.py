"""Generators and derivations for session and chat identifiers."""
import secrets
import string
from typing import Union

MEETING_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_ID_PREFIX = "session-"


def generate_meeting_code(length: int = 6) -> str:
    return "".join(secrets.choice(MEETING_CODE_ALPHABET) for _ in range(length))


def normalize_meeting_code(code: str) -> str:
    return (code or "").strip().upper()


def generate_room_id() -> str:
    return f"{ROOM_ID_PREFIX}{secrets.token_hex(8)}"


def conversation_id(first: Union[int, str], second: Union[int, str]) -> str:
    """Deterministic id for a two-party chat: both sides compute the same value.

    >>> conversation_id("u2", "u1")
    'u1_u2'
    """
    return "_".join(sorted((str(first), str(second))))


def conversation_members(conversation: str) -> tuple:
    return tuple(conversation.split("_"))
