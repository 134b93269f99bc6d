"""
Core data models for the Picture Reveal Quiz.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .question_bank import QuestionBank


def new_question_id() -> str:
    """Generate a unique question identifier."""
    return uuid.uuid4().hex


@dataclass
class Question:
    """Represents a single multiple-choice question."""
    text: str
    options: List[str]
    correct_index: int
    id: str = field(default_factory=new_question_id)


class GameMode(Enum):
    """Supported game modes."""
    SOLO = "solo"
    TEAM = "team"
    SPEED = "speed"


class Team(Enum):
    """The two teams of team mode."""
    RED = "red"
    BLUE = "blue"

    @property
    def other(self) -> "Team":
        return Team.BLUE if self is Team.RED else Team.RED


class Outcome(Enum):
    """Result of judging one pending question."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


class ResultKind(Enum):
    """How a finished game is summarised."""
    SOLO = "solo"
    WINNER = "winner"
    TIE = "tie"


@dataclass(frozen=True)
class GameResult:
    """Outcome tag of a finished game."""
    kind: ResultKind
    winner: Optional[Team] = None
    final_score: Optional[int] = None


@dataclass(frozen=True)
class ScoreSnapshot:
    """Read-only view of the score keeper."""
    mode: GameMode
    score: int = 0
    red: int = 0
    blue: int = 0
    active_team: Optional[Team] = None


@dataclass(frozen=True)
class WinSummary:
    """Everything the presentation layer needs to show the win screen."""
    mode: GameMode
    result: GameResult
    scores: ScoreSnapshot
    revealed_count: int
    total_cells: int
    forced: bool = False


@dataclass
class GameSettings:
    """Host-side defaults used to build a GameConfig."""
    mode: GameMode = GameMode.SOLO
    grid_size: int = 3
    time_limit: int = 15
    feedback_dwell: float = 1.5
    picture_url: str = "https://picsum.photos/seed/edu/800/600"


@dataclass
class GameConfig:
    """Configuration accepted by GameSession.start."""
    mode: GameMode
    grid_size: int
    time_limit_seconds: int
    question_bank: "QuestionBank"
    feedback_dwell_seconds: float = 0.0


class SessionPhase(Enum):
    """Lifecycle phases of a game session."""
    SETUP = "setup"
    IDLE = "idle"
    QUESTION_PENDING = "question_pending"
    RESOLVING = "resolving"
    WON = "won"


@dataclass(frozen=True)
class SetupState:
    phase = SessionPhase.SETUP


@dataclass(frozen=True)
class IdleState:
    phase = SessionPhase.IDLE


@dataclass(frozen=True)
class QuestionPendingState:
    """A selected cell waiting for an answer."""
    cell: int
    question: Question
    question_index: int
    deadline: int
    phase = SessionPhase.QUESTION_PENDING


@dataclass(frozen=True)
class ResolvingState:
    """Feedback window after a pending question was judged."""
    cell: int
    question: Question
    outcome: Outcome
    phase = SessionPhase.RESOLVING


@dataclass(frozen=True)
class WonState:
    summary: WinSummary
    phase = SessionPhase.WON


SessionState = Union[SetupState, IdleState, QuestionPendingState, ResolvingState, WonState]

GridSnapshot = Tuple[bool, ...]
