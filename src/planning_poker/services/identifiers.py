"""Identifier and shareable session code generation."""

import itertools
import random
import secrets
import string
import time

SESSION_CODE_LENGTH = 6
_CODE_ALPHABET = string.ascii_uppercase + string.digits
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# Process-wide sequence; makes ids unique even within one millisecond.
_sequence = itertools.count(1)


def generate_session_code() -> str:
    """Return a 6-character code drawn from [A-Z0-9].

    Uniqueness among live sessions is enforced by the registry.
    """
    return "".join(random.choices(_CODE_ALPHABET, k=SESSION_CODE_LENGTH))


def generate_session_id() -> str:
    return _generate_id("session")


def generate_participant_id() -> str:
    return _generate_id("participant")


def generate_story_id() -> str:
    return _generate_id("story")


def _generate_id(prefix: str) -> str:
    millis = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{prefix}_{millis}_{next(_sequence):x}{suffix}"
