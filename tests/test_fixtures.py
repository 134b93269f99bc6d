"""
Test fixtures and sample data for Picture Reveal Quiz tests.
"""
import asyncio
import json
from pathlib import Path
from typing import Dict, List
from unittest.mock import Mock, AsyncMock
import discord

from picture_quiz.game_session import SessionListener
from picture_quiz.models import GameConfig, GameMode, Question
from picture_quiz.question_bank import QuestionBank


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_sample_questions() -> List[Question]:
        """Create sample questions for testing; every correct answer is option 0."""
        return [
            Question("What is 2+2?", ["4", "3", "5"], 0, id="q1"),
            Question("What is 3+3?", ["6", "7"], 0, id="q2"),
            Question("What color is the sky?", ["Blue", "Green", "Red", "Yellow"], 0, id="q3"),
        ]

    @staticmethod
    def create_sample_bank() -> QuestionBank:
        return QuestionBank(TestFixtures.create_sample_questions())

    @staticmethod
    def create_game_config(mode: GameMode = GameMode.SOLO, grid_size: int = 2, time_limit: int = 10,
                           bank: QuestionBank = None, dwell: float = 0.0) -> GameConfig:
        """Create a session configuration; no feedback dwell unless asked."""
        return GameConfig(
            mode=mode,
            grid_size=grid_size,
            time_limit_seconds=time_limit,
            question_bank=bank if bank is not None else TestFixtures.create_sample_bank(),
            feedback_dwell_seconds=dwell
        )

    @staticmethod
    def create_valid_bank_json() -> Dict:
        """Create valid question bank JSON structure."""
        return {
            "questions": [
                {
                    "id": "capital",
                    "text": "What is the capital of Japan?",
                    "options": ["Kyoto", "Tokyo", "Osaka"],
                    "correct_index": 1
                },
                {
                    "text": "What is 10 + 5?",
                    "options": ["10", "15", "20", "25"],
                    "correct_index": 1
                }
            ]
        }

    @staticmethod
    def create_invalid_bank_json_structures() -> List[Dict]:
        """Create various invalid question bank JSON structures for testing."""
        return [
            # Missing 'questions' key
            {"quiz": [{"text": "Test?", "options": ["a", "b"], "correct_index": 0}]},
            # 'questions' is not a list
            {"questions": "not a list"},
            # Missing options
            {"questions": [{"text": "Test?", "correct_index": 0}]},
            # Correct index out of range
            {"questions": [{"text": "Test?", "options": ["a", "b"], "correct_index": 2}]},
            # Single option
            {"questions": [{"text": "Test?", "options": ["a"], "correct_index": 0}]},
            # Empty text
            {"questions": [{"text": "  ", "options": ["a", "b"], "correct_index": 0}]},
        ]

    @staticmethod
    def create_temp_bank_files(temp_dir: str) -> Dict[str, Path]:
        """Write one valid and one malformed bank file."""
        temp_path = Path(temp_dir)
        files = {}

        valid_file = temp_path / "valid_bank.json"
        with open(valid_file, 'w', encoding='utf-8') as f:
            json.dump(TestFixtures.create_valid_bank_json(), f)
        files['valid'] = valid_file

        malformed_file = temp_path / "malformed.json"
        with open(malformed_file, 'w', encoding='utf-8') as f:
            f.write('{"questions": [')
        files['malformed'] = malformed_file

        return files


class RecordingListener(SessionListener):
    """Session listener that records every event in order."""

    def __init__(self):
        self.events = []

    def on_state_changed(self, state):
        self.events.append(("state", state.phase))

    def on_tick(self, remaining):
        self.events.append(("tick", remaining))

    def on_cell_revealed(self, cell):
        self.events.append(("revealed", cell))

    def on_answer_judged(self, outcome):
        self.events.append(("judged", outcome))

    def on_turn_changed(self, team):
        self.events.append(("turn", team))

    def on_won(self, summary):
        self.events.append(("won", summary))

    def of_kind(self, kind):
        return [value for event_kind, value in self.events if event_kind == kind]


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.channel = MockDiscordObjects.create_mock_channel(channel_id)
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.user.mention = f"<@{user_id}>"
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        interaction.original_response = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return interaction

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock()
        return channel

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        return message


def async_test(coro):
    """Decorator to run async test methods."""
    def wrapper(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(coro(self))
        finally:
            loop.close()
    return wrapper
