"""Typed failures raised by session operations."""


class SessionError(Exception):
    """Base class for failures the transport layer relays to a participant."""

    kind = "session_error"
    default_message = "Session operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(SessionError):
    """A session, participant or story does not exist."""

    kind = "not_found"
    default_message = "Not found"


class SessionNotFoundError(NotFoundError):
    kind = "session_not_found"
    default_message = "Session not found"


class ParticipantNotFoundError(NotFoundError):
    kind = "participant_not_found"
    default_message = "Participant not found"


class StoryNotFoundError(NotFoundError):
    kind = "story_not_found"
    default_message = "Story not found"


class UnauthorizedError(SessionError):
    """A member attempted a facilitator-only action."""

    kind = "unauthorized"
    default_message = "Only facilitators can perform this action"


class ValidationError(SessionError):
    """Input failed a length or type constraint."""

    kind = "validation_error"
    default_message = "Invalid input"


class DuplicateNameError(SessionError):
    """The participant name is already taken in the session."""

    kind = "duplicate_name"
    default_message = "Participant name already exists in this session"


class InvalidStateError(SessionError):
    """The operation is not allowed in the current voting state."""

    kind = "invalid_state"
    default_message = "Operation not allowed in the current state"
