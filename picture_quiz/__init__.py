"""
Picture Reveal Quiz: answer questions to uncover a hidden picture.
"""
from .errors import PictureQuizError
from .game_session import GameSession, SessionListener
from .models import GameConfig, GameMode, Outcome, Question, SessionPhase, Team
from .question_bank import QuestionBank

__all__ = [
    "GameConfig",
    "GameMode",
    "GameSession",
    "Outcome",
    "PictureQuizError",
    "Question",
    "QuestionBank",
    "SessionListener",
    "SessionPhase",
    "Team",
]
