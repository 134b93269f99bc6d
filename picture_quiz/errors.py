"""
Exception hierarchy for the Picture Reveal Quiz.

Every error is a local, recoverable condition. A command that raises one of
these leaves the session exactly as it was.
"""


class PictureQuizError(Exception):
    """Base exception for all game errors."""
    pass


class InvalidConfigError(PictureQuizError):
    """Raised when a game cannot start with the given configuration."""
    pass


class NoQuestionsError(InvalidConfigError):
    """Raised when starting a game with an empty question bank."""
    pass


class InvalidSizeError(InvalidConfigError):
    """Raised when the grid size is outside the supported range."""
    pass


class InvalidSelectionError(PictureQuizError):
    """Raised when a cell cannot be selected right now."""
    pass


class InvalidSubmissionError(PictureQuizError):
    """Raised when an answer is submitted with nothing pending or an unknown option."""
    pass


class InvalidStateError(PictureQuizError):
    """Raised when a command is not valid in the current session state."""
    pass


class EmptyBankError(PictureQuizError):
    """Raised when reading from an empty question bank."""
    pass


class AlreadyRevealedError(PictureQuizError):
    """Raised when revealing a cell twice."""
    pass


class OutOfRangeError(PictureQuizError):
    """Raised for a cell index outside the grid."""
    pass


class InvalidQuestionError(PictureQuizError):
    """Raised when a question fails validation."""
    pass
