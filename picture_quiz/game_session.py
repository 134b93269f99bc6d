"""
Game session state machine for the Picture Reveal Quiz.

A session owns its grid, score keeper and countdown timer, borrows the
question bank from its configuration, and is mutated only through its
command methods. Presentation code reacts to events through SessionListener
objects; listeners never feed state back in except by issuing commands.
"""
import logging
import time
from typing import List, Optional

from .errors import (
    InvalidConfigError,
    InvalidSelectionError,
    InvalidStateError,
    InvalidSubmissionError,
    NoQuestionsError,
)
from .grid import Grid
from .models import (
    GameConfig,
    GameMode,
    GridSnapshot,
    IdleState,
    Outcome,
    Question,
    QuestionPendingState,
    ResolvingState,
    ScoreSnapshot,
    SessionPhase,
    SessionState,
    SetupState,
    WinSummary,
    WonState,
)
from .scoring import ScoreKeeper
from .timer import CountdownTimer


class SessionListener:
    """Receives game events. Subclasses override the hooks they care about."""

    def on_state_changed(self, state: SessionState) -> None:
        pass

    def on_tick(self, remaining: int) -> None:
        pass

    def on_cell_revealed(self, cell: int) -> None:
        pass

    def on_answer_judged(self, outcome: Outcome) -> None:
        pass

    def on_turn_changed(self, team) -> None:
        pass

    def on_won(self, summary: WinSummary) -> None:
        pass


class GameSession:
    """
    Orchestrates one picture-reveal game.

    States: Setup -> Idle -> QuestionPending -> Resolving -> Idle | Won.
    Every command either applies completely or raises a PictureQuizError and
    leaves the session untouched.
    """

    def __init__(self, session_id: str = None):
        """
        Initialize an un-started session.

        Args:
            session_id: Identifier used in log records (e.g. a channel id)
        """
        self.logger = logging.getLogger(__name__)
        self.session_id = session_id or f"session-{id(self):x}"
        self._listeners: List[SessionListener] = []
        self._timer = CountdownTimer(name=f"{self.session_id}-timer")
        self._reset()
        self._state: SessionState = SetupState()

    def _reset(self) -> None:
        self._config: Optional[GameConfig] = None
        self._grid: Optional[Grid] = None
        self._scores: Optional[ScoreKeeper] = None
        self._question_pointer = 0
        self._last_outcome: Optional[Outcome] = None
        self._timer.reset(0)

    # --- Listeners ---

    def add_listener(self, listener: SessionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, hook: str, *args) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, hook)(*args)
            except Exception:
                # Presentation failures never reach the state machine.
                self.logger.exception(f"Listener {listener!r} failed in {hook} for {self.session_id}")

    def _set_state(self, state: SessionState, reason: str) -> None:
        previous = self._state.phase
        self._state = state
        self.logger.info(
            f"Session {self.session_id}: {previous.value} -> {state.phase.value} ({reason})",
            extra={
                'event_type': 'session_state_transition',
                'session_id': self.session_id,
                'from_state': previous.value,
                'to_state': state.phase.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    # --- Commands ---

    def start(self, config: GameConfig) -> None:
        """
        Start a game: Setup (or a finished game) -> Idle.

        Raises:
            InvalidStateError: If a game is in progress
            NoQuestionsError: If the question bank is empty
            InvalidSizeError: If the grid size is not 2-5
            InvalidConfigError: If the mode, time limit or dwell is invalid
        """
        if self._state.phase not in (SessionPhase.SETUP, SessionPhase.WON):
            raise InvalidStateError("A game is already in progress; return to setup first")

        self._validate_config(config)
        grid = Grid(config.grid_size)

        self._config = config
        self._grid = grid
        self._scores = ScoreKeeper(config.mode)
        self._question_pointer = 0
        self._last_outcome = None
        self._timer.reset(config.time_limit_seconds)
        self._set_state(IdleState(), "game started")
        self._emit('on_state_changed', self._state)

    @staticmethod
    def _validate_config(config: GameConfig) -> None:
        if not isinstance(config, GameConfig):
            raise InvalidConfigError(f"Expected a GameConfig, got {type(config).__name__}")
        if config.question_bank is None or len(config.question_bank) == 0:
            raise NoQuestionsError("Add at least one question before starting a game")
        if not isinstance(config.mode, GameMode):
            raise InvalidConfigError(f"Unknown game mode: {config.mode!r}")
        time_limit = config.time_limit_seconds
        if isinstance(time_limit, bool) or not isinstance(time_limit, int) or time_limit < 1:
            raise InvalidConfigError(f"Time limit must be a whole number of seconds >= 1, got {time_limit!r}")
        if config.feedback_dwell_seconds < 0:
            raise InvalidConfigError("Feedback dwell cannot be negative")

    def select_cell(self, cell: int) -> Question:
        """
        Select a hidden cell and pose the next question: Idle -> QuestionPending.

        Returns:
            The question now pending

        Raises:
            InvalidSelectionError: If nothing can be selected right now, the
                cell does not exist or it is already revealed
        """
        phase = self._state.phase
        if phase is SessionPhase.QUESTION_PENDING:
            raise InvalidSelectionError("Another cell is already waiting for an answer")
        if phase is SessionPhase.RESOLVING:
            raise InvalidSelectionError("Wait for the current answer feedback to finish")
        if phase is SessionPhase.WON:
            raise InvalidSelectionError("The game is over")
        if phase is SessionPhase.SETUP:
            raise InvalidSelectionError("The game has not started")

        if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < self._grid.cell_count:
            raise InvalidSelectionError(f"Cell {cell!r} does not exist on a {self._grid.size}x{self._grid.size} grid")
        if self._grid.is_revealed(cell):
            raise InvalidSelectionError(f"Cell {cell} is already revealed")

        question = self._config.question_bank.next(self._question_pointer)
        time_limit = self._config.time_limit_seconds
        self._set_state(
            QuestionPendingState(cell=cell, question=question,
                                 question_index=self._question_pointer, deadline=time_limit),
            f"cell {cell} selected"
        )
        self._emit('on_state_changed', self._state)
        self._timer.start(time_limit, self._handle_tick, self._handle_expire)
        return question

    def submit_answer(self, option_index: int) -> Outcome:
        """
        Judge an answer for the pending question: QuestionPending -> Resolving.

        Returns:
            The outcome of the answer

        Raises:
            InvalidSubmissionError: If no question is pending or the option
                index is not one of the question's options
        """
        state = self._state
        if not isinstance(state, QuestionPendingState):
            raise InvalidSubmissionError("No question is waiting for an answer")
        if (isinstance(option_index, bool) or not isinstance(option_index, int)
                or not 0 <= option_index < len(state.question.options)):
            raise InvalidSubmissionError(
                f"Option {option_index!r} is not valid; choose 0-{len(state.question.options) - 1}"
            )
        return self._resolve(state, option_index)

    def tick(self) -> None:
        """One-second pulse from the host's scheduler."""
        self._timer.tick()

    def finish_feedback(self) -> None:
        """
        End the feedback dwell: Resolving -> Idle, or Won on the last cell.

        Raises:
            InvalidStateError: If no feedback is being displayed
        """
        if not isinstance(self._state, ResolvingState):
            raise InvalidStateError("No answer feedback is being displayed")
        self._finish_resolution()

    def force_win(self) -> WinSummary:
        """
        Win immediately after a correct picture guess, whatever the grid shows.

        Raises:
            InvalidStateError: If the game has not started or is already won
        """
        if self._state.phase is SessionPhase.WON:
            raise InvalidStateError("The game is already won")
        if self._state.phase is SessionPhase.SETUP:
            raise InvalidStateError("The game has not started")
        return self._win(forced=True)

    def return_to_setup(self) -> None:
        """Abandon the current game from any state."""
        self._timer.cancel()
        self._reset()
        self._set_state(SetupState(), "returned to setup")
        self._emit('on_state_changed', self._state)

    # --- Transitions ---

    def _handle_tick(self, remaining: int) -> None:
        self._emit('on_tick', remaining)

    def _handle_expire(self) -> None:
        state = self._state
        if not isinstance(state, QuestionPendingState):
            self.logger.warning(
                f"Session {self.session_id}: timer expired with no pending question",
                extra={'event_type': 'session_late_expiry', 'session_id': self.session_id}
            )
            return
        self._resolve(state, None)

    def _resolve(self, pending: QuestionPendingState, option_index: Optional[int]) -> Outcome:
        correct = option_index is not None and option_index == pending.question.correct_index
        outcome = Outcome.CORRECT if correct else Outcome.INCORRECT

        # The pending question is resolved before any effect is applied.
        self._timer.cancel()
        resolving = ResolvingState(cell=pending.cell, question=pending.question, outcome=outcome)
        self._set_state(resolving, "timed out" if option_index is None else f"answered option {option_index}")
        self._last_outcome = outcome

        if correct:
            self._grid.reveal(pending.cell)
            self._scores.record_correct()
        else:
            self._scores.record_incorrect()

        self._emit('on_state_changed', resolving)
        if correct:
            self._emit('on_cell_revealed', pending.cell)
        self._emit('on_answer_judged', outcome)

        if self._config.feedback_dwell_seconds <= 0 and self._state is resolving:
            self._finish_resolution()
        return outcome

    def _finish_resolution(self) -> None:
        state = self._state
        if state.outcome is Outcome.CORRECT and self._grid.is_complete():
            self._win(forced=False)
            return

        self._last_outcome = None
        self._question_pointer = (self._question_pointer + 1) % max(len(self._config.question_bank), 1)
        self._scores.end_turn()
        self._timer.reset(self._config.time_limit_seconds)
        self._set_state(IdleState(), "feedback finished")
        self._emit('on_state_changed', self._state)
        if self._scores.is_team_mode:
            self._emit('on_turn_changed', self._scores.active_team)

    def _win(self, forced: bool) -> WinSummary:
        self._timer.cancel()
        summary = WinSummary(
            mode=self._config.mode,
            result=self._scores.winner(),
            scores=self._scores.snapshot(),
            revealed_count=self._grid.revealed_count(),
            total_cells=self._grid.cell_count,
            forced=forced
        )
        self._last_outcome = None
        self._set_state(WonState(summary=summary), "picture guessed" if forced else "all cells revealed")
        self._emit('on_state_changed', self._state)
        self._emit('on_won', summary)
        return summary

    # --- Queries ---

    def current_state(self) -> SessionState:
        return self._state

    def current_question(self) -> Optional[Question]:
        """The pending question, kept visible while its feedback is shown."""
        if isinstance(self._state, (QuestionPendingState, ResolvingState)):
            return self._state.question
        return None

    def grid_snapshot(self) -> GridSnapshot:
        return self._grid.snapshot() if self._grid else ()

    def score_snapshot(self) -> Optional[ScoreSnapshot]:
        return self._scores.snapshot() if self._scores else None

    def remaining_time(self) -> int:
        return self._timer.remaining

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def last_outcome(self) -> Optional[Outcome]:
        return self._last_outcome

    @property
    def question_pointer(self) -> int:
        return self._question_pointer

    @property
    def config(self) -> Optional[GameConfig]:
        return self._config

    @property
    def selected_cell(self) -> Optional[int]:
        if isinstance(self._state, (QuestionPendingState, ResolvingState)):
            return self._state.cell
        return None

    @property
    def grid_size(self) -> int:
        return self._grid.size if self._grid else 0
