"""Consensus rule shared by both ends of a conversation.

Both peers must run the same rule: a message accepted by the sender but
rejected by the receiver is silently lost. The rule is therefore strict and
has no configurable knobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from core.errors import ValidationError
from core.models import MessagePayload

REQUIRED_FIELDS = ("text", "timestamp")


def assert_valid(value: Any) -> None:
    """Accept exactly {"text": str, "timestamp": int}; raise ValidationError otherwise."""

    if not isinstance(value, Mapping):
        raise ValidationError(f"Invalid record: expected an object, got {type(value).__name__}")

    missing = [name for name in REQUIRED_FIELDS if name not in value]
    extra = sorted(str(name) for name in value if name not in REQUIRED_FIELDS)
    problems = []
    if missing:
        problems.append("missing " + ", ".join(f'"{name}"' for name in missing))
    if extra:
        problems.append("unexpected " + ", ".join(f'"{name}"' for name in extra))
    if problems:
        raise ValidationError(
            'Invalid record: only "text" and "timestamp" are allowed ('
            + "; ".join(problems)
            + ")"
        )

    if not isinstance(value["text"], str):
        raise ValidationError('Invalid record: "text" must be a string')
    timestamp = value["timestamp"]
    # bool is an int subclass but never a valid timestamp.
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise ValidationError('Invalid record: "timestamp" must be an integer')


@dataclass(frozen=True)
class Consensus:
    """Identifier plus rule, handed to the signal adapter as one contract."""

    id: str
    assert_record: Callable[[Any], None] = assert_valid

    def parse(self, value: Any) -> MessagePayload:
        """Validate a decoded record and return it as a MessagePayload."""

        self.assert_record(value)
        return MessagePayload(text=value["text"], timestamp=value["timestamp"])
