"""
Game controller for the Picture Reveal Quiz bot.
Owns one game session per Discord channel, drives its countdown from the
event loop and turns game errors into user-facing result dictionaries.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .errors import (
    EmptyBankError,
    InvalidConfigError,
    InvalidQuestionError,
    InvalidSelectionError,
    InvalidSizeError,
    InvalidStateError,
    InvalidSubmissionError,
    NoQuestionsError,
    PictureQuizError,
)
from .game_session import GameSession, SessionListener
from .models import Outcome, Question, SessionPhase, WinSummary
from .question_bank import QuestionBank
from .timer import AsyncTicker


ACTIVE_PHASES = (SessionPhase.IDLE, SessionPhase.QUESTION_PENDING, SessionPhase.RESOLVING)


@dataclass
class ChannelGame:
    """Everything the controller keeps for one channel."""
    session: GameSession
    bank_name: str
    picture_url: str
    listener: Optional[SessionListener] = None
    ticker: Optional[AsyncTicker] = None
    feedback_handle: Optional[asyncio.TimerHandle] = None


class _ControllerHooks(SessionListener):
    """Session events the controller itself reacts to."""

    def __init__(self, controller: "GameController", channel_id: int, session: GameSession):
        self.controller = controller
        self.channel_id = channel_id
        self.session = session

    def on_answer_judged(self, outcome: Outcome) -> None:
        if self.session.phase is SessionPhase.RESOLVING:
            self.controller._schedule_feedback_end(self.channel_id, self.session)

    def on_won(self, summary: WinSummary) -> None:
        self.controller._stop_clock(self.channel_id)


class GameController:
    """
    Orchestrates picture-reveal games across Discord channels.

    Each channel has at most one session. The question bank is shared by all
    channels and can only be edited while no game that uses it is running.
    """

    def __init__(self, data_manager: DataManager, config_manager: ConfigManager, use_ticker: bool = True):
        """
        Initialize the game controller.

        Args:
            data_manager: Source of question banks
            config_manager: Source of game settings
            use_ticker: Drive countdowns from the running event loop; when
                False the caller must call ``tick`` itself
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.use_ticker = use_ticker
        self.bank_name: Optional[str] = None
        self._games: Dict[int, ChannelGame] = {}

        self.logger.info("GameController initialized")

    # --- Lookups ---

    def get_session(self, channel_id: int) -> Optional[GameSession]:
        game = self._games.get(channel_id)
        return game.session if game else None

    def get_game(self, channel_id: int) -> Optional[ChannelGame]:
        return self._games.get(channel_id)

    def has_active_game(self, channel_id: int) -> bool:
        session = self.get_session(channel_id)
        return session is not None and session.phase in ACTIVE_PHASES

    def select_bank(self, bank_name: str) -> Dict[str, Any]:
        if not self.data_manager.bank_exists(bank_name):
            return {
                'success': False,
                'error': f"Unknown question bank: {bank_name}",
                'user_message': f"❌ No question bank named '{bank_name}'"
            }
        self.bank_name = bank_name
        self.logger.info(f"Using question bank '{bank_name}'")
        return {
            'success': True,
            'message': f"Using question bank {bank_name}",
            'user_message': f"✅ Using question bank **{bank_name}**"
        }

    def get_current_bank(self) -> QuestionBank:
        """
        Return the bank new games will use, creating an empty one if none is loaded.
        """
        if self.bank_name is None or not self.data_manager.bank_exists(self.bank_name):
            available = self.data_manager.get_available_banks()
            if available:
                self.bank_name = available[0]
            else:
                self.bank_name = "questions"
                self.data_manager.loaded_banks[self.bank_name] = QuestionBank()
        return self.data_manager.get_bank(self.bank_name)

    def _bank_in_use(self) -> bool:
        self.get_current_bank()
        return any(
            game.session.phase in ACTIVE_PHASES and game.bank_name == self.bank_name
            for game in self._games.values()
        )

    # --- Game commands ---

    def start_game(self, channel_id: int, listener: Optional[SessionListener] = None) -> Dict[str, Any]:
        """
        Start a new game in a channel with the current settings.

        Args:
            channel_id: Discord channel identifier
            listener: Presentation listener for this game's events

        Returns:
            Dictionary with success status, messages and game info
        """
        if self.has_active_game(channel_id):
            self.logger.warning(f"Attempted to start a game in channel {channel_id} but one is running")
            return {
                'success': False,
                'error': "Game already running",
                'user_message': "❌ A game is already running in this channel. Use `/exit` to end it first."
            }

        try:
            bank = self.get_current_bank()
            config = self.config_manager.build_game_config(bank)

            game = self._games.get(channel_id)
            if game is None:
                session = GameSession(session_id=str(channel_id))
                session.add_listener(_ControllerHooks(self, channel_id, session))
                game = ChannelGame(session=session, bank_name=self.bank_name,
                                   picture_url=self.config_manager.get_picture_url())
            else:
                if game.listener is not None:
                    game.session.remove_listener(game.listener)

            game.listener = listener
            if listener is not None:
                game.session.add_listener(listener)
            game.session.start(config)
            game.bank_name = self.bank_name
            game.picture_url = self.config_manager.get_picture_url()
            self._games[channel_id] = game

            if self.use_ticker:
                game.ticker = AsyncTicker(lambda: self.tick(channel_id), name=f"channel-{channel_id}")
                game.ticker.start()

            self.logger.info(
                f"Started game in channel {channel_id}: mode {config.mode.value}, "
                f"{config.grid_size}x{config.grid_size}, {config.time_limit_seconds}s, bank '{self.bank_name}'"
            )
            return {
                'success': True,
                'message': f"Game started in channel {channel_id}",
                'game_info': self.get_game_info(channel_id)
            }

        except Exception as e:
            return self._handle_game_error(channel_id, e, "starting the game")

    def select_cell(self, channel_id: int, cell_number: int) -> Dict[str, Any]:
        """
        Select a cell by its 1-based number as shown on the board.

        Returns:
            Dictionary with success status and the question now pending
        """
        session = self.get_session(channel_id)
        if session is None:
            return self._no_game_result()

        if isinstance(cell_number, bool) or not isinstance(cell_number, int):
            return {
                'success': False,
                'error': f"Cell number must be an integer, got {type(cell_number).__name__}",
                'user_message': "❌ Pick a cell by its number"
            }

        try:
            question = session.select_cell(cell_number - 1)
            return {
                'success': True,
                'message': f"Cell {cell_number} selected",
                'cell_number': cell_number,
                'question': question,
                'time_limit': session.config.time_limit_seconds
            }
        except Exception as e:
            return self._handle_game_error(channel_id, e, "selecting a cell")

    def submit_answer(self, channel_id: int, option_index: int) -> Dict[str, Any]:
        """
        Answer the pending question with a 0-based option index.

        Returns:
            Dictionary with success status and the judged outcome
        """
        session = self.get_session(channel_id)
        if session is None:
            return self._no_game_result()

        try:
            question = session.current_question()
            outcome = session.submit_answer(option_index)
            return {
                'success': True,
                'message': f"Answer judged {outcome.value}",
                'outcome': outcome,
                'correct_option': question.correct_index,
                'phase': session.phase
            }
        except Exception as e:
            return self._handle_game_error(channel_id, e, "submitting an answer")

    def guess_picture(self, channel_id: int, guess: str) -> Dict[str, Any]:
        """
        Win the game outright with a picture guess.

        The guess itself is judged by the players; the game only records it.
        """
        session = self.get_session(channel_id)
        if session is None:
            return self._no_game_result()

        if not isinstance(guess, str) or not guess.strip():
            return {
                'success': False,
                'error': "Empty guess",
                'user_message': "❌ Tell us what you think the picture is"
            }

        try:
            summary = session.force_win()
            self.logger.info(f"Picture guessed in channel {channel_id}: {guess.strip()!r}")
            return {
                'success': True,
                'message': "Picture guessed",
                'guess': guess.strip(),
                'summary': summary
            }
        except Exception as e:
            return self._handle_game_error(channel_id, e, "guessing the picture")

    def return_to_setup(self, channel_id: int) -> Dict[str, Any]:
        """End whatever game the channel has and go back to setup."""
        game = self._games.get(channel_id)
        if game is None:
            return self._no_game_result()

        self._stop_clock(channel_id)
        game.session.return_to_setup()
        if game.listener is not None:
            game.session.remove_listener(game.listener)
            game.listener = None
        self.logger.info(f"Channel {channel_id} returned to setup")
        return {
            'success': True,
            'message': "Returned to setup",
            'user_message': "👋 Game ended. Use `/start` to play again."
        }

    def finish_feedback(self, channel_id: int) -> Dict[str, Any]:
        """End the answer feedback window now."""
        session = self.get_session(channel_id)
        if session is None:
            return self._no_game_result()
        game = self._games[channel_id]
        if game.feedback_handle is not None:
            game.feedback_handle.cancel()
            game.feedback_handle = None
        try:
            session.finish_feedback()
            return {'success': True, 'message': "Feedback finished", 'phase': session.phase}
        except Exception as e:
            return self._handle_game_error(channel_id, e, "finishing feedback")

    def tick(self, channel_id: int) -> None:
        """One-second pulse for a channel's countdown."""
        session = self.get_session(channel_id)
        if session is not None:
            session.tick()

    # --- Timing ---

    def _schedule_feedback_end(self, channel_id: int, session: GameSession) -> None:
        game = self._games.get(channel_id)
        dwell = session.config.feedback_dwell_seconds
        if game is None or dwell <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning(
                f"No running event loop for channel {channel_id}; feedback must be finished manually"
            )
            return
        game.feedback_handle = loop.call_later(dwell, self._end_feedback, channel_id, session)

    def _end_feedback(self, channel_id: int, session: GameSession) -> None:
        game = self._games.get(channel_id)
        if game is None or game.session is not session:
            return
        game.feedback_handle = None
        if session.phase is SessionPhase.RESOLVING:
            session.finish_feedback()

    def _stop_clock(self, channel_id: int) -> None:
        game = self._games.get(channel_id)
        if game is None:
            return
        if game.ticker is not None:
            game.ticker.stop()
            game.ticker = None
        if game.feedback_handle is not None:
            game.feedback_handle.cancel()
            game.feedback_handle = None

    def shutdown(self) -> None:
        """Stop every channel's clock."""
        for channel_id in list(self._games):
            self._stop_clock(channel_id)
        self.logger.info("GameController shut down")

    # --- Question bank editing ---

    def _bank_locked_result(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': "Question bank in use",
            'user_message': "❌ Questions can't be edited while a game is running. Use `/exit` first."
        }

    def list_questions(self) -> List[Question]:
        return self.get_current_bank().questions()

    def add_question(self, text: str, options: List[str], correct_index: int) -> Dict[str, Any]:
        """
        Add a question to the current bank and save it.

        Returns:
            Dictionary with success status and the new question
        """
        if self._bank_in_use():
            return self._bank_locked_result()

        bank = self.get_current_bank()
        try:
            question = Question(text=text.strip() if isinstance(text, str) else text,
                                options=[o.strip() if isinstance(o, str) else o for o in options],
                                correct_index=correct_index)
            bank.add(question)
        except InvalidQuestionError as e:
            return self._handle_game_error(None, e, "adding a question")

        save_result = self.data_manager.save_bank(self.bank_name, bank)
        return {
            'success': True,
            'message': f"Added question {question.id}",
            'user_message': f"✅ Question added ({len(bank)} in bank)",
            'question': question,
            'saved': save_result['success']
        }

    def remove_question(self, question_id: str) -> Dict[str, Any]:
        if self._bank_in_use():
            return self._bank_locked_result()

        bank = self.get_current_bank()
        if not bank.remove(question_id):
            return {
                'success': False,
                'error': f"Unknown question id: {question_id}",
                'user_message': f"❌ No question with id `{question_id}`"
            }
        save_result = self.data_manager.save_bank(self.bank_name, bank)
        return {
            'success': True,
            'message': f"Removed question {question_id}",
            'user_message': f"🗑️ Question removed ({len(bank)} left)",
            'saved': save_result['success']
        }

    def clear_questions(self) -> Dict[str, Any]:
        if self._bank_in_use():
            return self._bank_locked_result()

        bank = self.get_current_bank()
        bank.clear()
        save_result = self.data_manager.save_bank(self.bank_name, bank)
        return {
            'success': True,
            'message': "Cleared question bank",
            'user_message': "🗑️ All questions removed",
            'saved': save_result['success']
        }

    # --- Reporting ---

    def get_game_info(self, channel_id: int) -> Optional[Dict[str, Any]]:
        game = self._games.get(channel_id)
        if game is None or game.session.config is None:
            return None
        session = game.session
        config = session.config
        return {
            'mode': config.mode,
            'grid_size': config.grid_size,
            'time_limit': config.time_limit_seconds,
            'bank_name': game.bank_name,
            'question_count': len(config.question_bank),
            'picture_url': game.picture_url,
            'phase': session.phase,
            'revealed': sum(session.grid_snapshot()),
            'total_cells': len(session.grid_snapshot()),
            'scores': session.score_snapshot(),
            'remaining_time': session.remaining_time()
        }

    def get_status_summary(self, channel_id: int) -> str:
        info = self.get_game_info(channel_id)
        session = self.get_session(channel_id)
        if info is None or session.phase is SessionPhase.SETUP:
            return "No game running. Use `/start` to begin."

        scores = info['scores']
        if scores.active_team is not None:
            score_text = f"Red {scores.red} - Blue {scores.blue} | Turn: {scores.active_team.value}"
        else:
            score_text = f"Score: {scores.score}"
        return (
            f"Mode: {info['mode'].value} | Status: {info['phase'].value} | "
            f"Revealed: {info['revealed']}/{info['total_cells']} | {score_text}"
        )

    # --- Errors ---

    def _no_game_result(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': "No game in this channel",
            'user_message': "❌ No game in this channel. Use `/start` to begin."
        }

    def _handle_game_error(self, channel_id: Optional[int], error: Exception, operation: str) -> Dict[str, Any]:
        """
        Convert an error into a result dictionary.

        Game errors are expected user mistakes and are logged as warnings;
        anything else is logged with its traceback.
        """
        if isinstance(error, PictureQuizError):
            self.logger.warning(f"Rejected {operation} in channel {channel_id}: {error}")
        else:
            self.logger.exception(f"Unexpected error {operation} in channel {channel_id}")
        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, NoQuestionsError):
            return "❌ The question bank is empty. Add questions with `/add_question` first."
        if isinstance(error, InvalidSizeError):
            return f"❌ Grid size must be between {ConfigManager.MIN_GRID_SIZE} and {ConfigManager.MAX_GRID_SIZE}"
        if isinstance(error, InvalidConfigError):
            return f"❌ Invalid game settings: {error}"
        if isinstance(error, (InvalidSelectionError, InvalidSubmissionError)):
            return f"❌ {error}"
        if isinstance(error, InvalidStateError):
            return f"⚠️ {error}"
        if isinstance(error, InvalidQuestionError):
            return f"❌ Invalid question: {error}"
        if isinstance(error, EmptyBankError):
            return "❌ The question bank is empty"
        if isinstance(error, PictureQuizError):
            return f"❌ {error}"
        return f"❌ An unexpected error occurred while {operation}"
