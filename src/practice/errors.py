"""
Exceptions raised by the practice engine.

Only host-side mistakes raise: illegal session transitions, unknown topics,
missing question banks and malformed content files. Wrong or odd user
answers are never errors; they are judged incorrect.
"""


class PracticeError(Exception):
    """Base class for practice engine errors."""
    pass


class SessionStateError(PracticeError):
    """Raised when an operation is not legal in the session's current state."""
    pass


class TopicNotFoundError(PracticeError):
    """Raised when a topic id cannot be resolved in the loaded CAM."""
    pass


class QuestionBankNotFoundError(PracticeError):
    """Raised when no (or an empty) question bank is registered for a topic."""
    pass


class ContentValidationError(PracticeError):
    """Raised when a question bank or CAM file does not match the expected shape."""
    pass

