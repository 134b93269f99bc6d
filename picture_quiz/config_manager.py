"""
Configuration manager for Picture Reveal Quiz settings.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Union
from pathlib import Path

from .models import GameConfig, GameMode, GameSettings
from .question_bank import QuestionBank


class ConfigManager:
    """Manages game settings and turns them into session configurations."""

    # Default configuration values
    DEFAULT_MODE = GameMode.SOLO
    DEFAULT_GRID_SIZE = 3
    DEFAULT_TIME_LIMIT = 15
    DEFAULT_FEEDBACK_DWELL = 1.5
    DEFAULT_PICTURE_URL = "https://picsum.photos/seed/edu/800/600"
    DEFAULT_QUESTION_DIRECTORY = "./questions/"

    # Speed mode plays as solo with this time limit
    SPEED_TIME_LIMIT = 5

    # Validation limits
    MIN_GRID_SIZE = 2
    MAX_GRID_SIZE = 5
    MIN_TIME_LIMIT = 5
    MAX_TIME_LIMIT = 30
    MAX_FEEDBACK_DWELL = 5.0

    # Classroom names accepted for the modes
    MODE_ALIASES = {
        "classroom": GameMode.SOLO,
        "versus": GameMode.TEAM,
    }

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = GameSettings()
        self._question_directory = self.DEFAULT_QUESTION_DIRECTORY

    def get_game_settings(self) -> GameSettings:
        """Return a copy of the current settings."""
        return replace(self._settings)

    def _failure(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def set_mode(self, mode: Union[str, GameMode]) -> Dict[str, Any]:
        """
        Set the game mode.

        Args:
            mode: A GameMode, its value ("solo", "team", "speed") or an alias
                ("classroom", "versus")

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(mode, str):
            key = mode.strip().lower()
            resolved = self.MODE_ALIASES.get(key)
            if resolved is None:
                try:
                    resolved = GameMode(key)
                except ValueError:
                    return self._failure(
                        f"Unknown game mode: {mode}",
                        f"❌ Unknown mode '{mode}'. Choose solo, team or speed"
                    )
            mode = resolved

        if not isinstance(mode, GameMode):
            return self._failure(
                f"Game mode must be a string, got {type(mode).__name__}",
                f"❌ Invalid input: Expected a mode name, got {type(mode).__name__}"
            )

        self._settings.mode = mode
        self.logger.info(f"Game mode set to {mode.value}")
        return {
            'success': True,
            'message': f"Game mode set to {mode.value}",
            'user_message': f"✅ Mode set to {mode.value}"
        }

    def get_mode(self) -> GameMode:
        return self._settings.mode

    def set_grid_size(self, size: int) -> Dict[str, Any]:
        """
        Set the grid dimension for new games.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(size, bool) or not isinstance(size, int):
            return self._failure(
                f"Grid size must be an integer, got {type(size).__name__}",
                f"❌ Invalid input: Expected a number, got {type(size).__name__}"
            )

        if size < self.MIN_GRID_SIZE or size > self.MAX_GRID_SIZE:
            return self._failure(
                f"Grid size must be between {self.MIN_GRID_SIZE} and {self.MAX_GRID_SIZE}",
                f"❌ Grid size must be between {self.MIN_GRID_SIZE} and {self.MAX_GRID_SIZE}"
            )

        self._settings.grid_size = size
        self.logger.info(f"Grid size set to {size}x{size}")
        return {
            'success': True,
            'message': f"Grid size set to {size}x{size}",
            'user_message': f"✅ Grid set to {size}x{size} ({size * size} cells)"
        }

    def get_grid_size(self) -> int:
        return self._settings.grid_size

    def set_time_limit(self, seconds: int) -> Dict[str, Any]:
        """
        Set the answer time limit for solo and team games.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(seconds, bool) or not isinstance(seconds, int):
            return self._failure(
                f"Time limit must be an integer, got {type(seconds).__name__}",
                f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            )

        if seconds < self.MIN_TIME_LIMIT:
            return self._failure(
                f"Time limit must be at least {self.MIN_TIME_LIMIT} seconds",
                f"❌ Timer too short: Minimum is {self.MIN_TIME_LIMIT} seconds"
            )

        if seconds > self.MAX_TIME_LIMIT:
            return self._failure(
                f"Time limit cannot exceed {self.MAX_TIME_LIMIT} seconds",
                f"❌ Timer too long: Maximum is {self.MAX_TIME_LIMIT} seconds"
            )

        self._settings.time_limit = seconds
        self.logger.info(f"Time limit set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Time limit set to {seconds} seconds",
            'user_message': f"✅ Timer set to {seconds} seconds"
        }

    def get_time_limit(self) -> int:
        return self._settings.time_limit

    def get_effective_time_limit(self) -> int:
        """Time limit a new game will actually use, after the speed-mode policy."""
        if self._settings.mode is GameMode.SPEED:
            return self.SPEED_TIME_LIMIT
        return self._settings.time_limit

    def set_feedback_dwell(self, seconds: Union[int, float]) -> Dict[str, Any]:
        """
        Set how long answer feedback stays up before the board unlocks.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return self._failure(
                f"Feedback dwell must be a number, got {type(seconds).__name__}",
                f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            )

        if seconds < 0 or seconds > self.MAX_FEEDBACK_DWELL:
            return self._failure(
                f"Feedback dwell must be between 0 and {self.MAX_FEEDBACK_DWELL} seconds",
                f"❌ Feedback time must be between 0 and {self.MAX_FEEDBACK_DWELL:g} seconds"
            )

        self._settings.feedback_dwell = float(seconds)
        self.logger.info(f"Feedback dwell set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Feedback dwell set to {seconds} seconds",
            'user_message': f"✅ Feedback shown for {seconds:g} seconds"
        }

    def get_feedback_dwell(self) -> float:
        return self._settings.feedback_dwell

    def set_picture_url(self, url: str) -> Dict[str, Any]:
        """
        Set the hidden picture shown when a game is won.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(url, str) or not url.strip():
            return self._failure(
                "Picture URL cannot be empty",
                "❌ Please provide a picture URL"
            )

        url = url.strip()
        if not url.startswith(("http://", "https://")):
            return self._failure(
                f"Picture URL must be http(s): {url}",
                "❌ The picture must be an http:// or https:// link"
            )

        self._settings.picture_url = url
        self.logger.info(f"Picture URL set to {url}")
        return {
            'success': True,
            'message': f"Picture URL set to {url}",
            'user_message': "✅ Hidden picture updated"
        }

    def get_picture_url(self) -> str:
        return self._settings.picture_url

    def set_question_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory path for question bank files.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            return self._failure(
                f"Question directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )

        if not directory.strip():
            return self._failure(
                "Question directory cannot be empty",
                "❌ Directory path cannot be empty"
            )

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._failure(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            return self._failure(
                f"Cannot use system directory: {normalized_path}",
                f"❌ Cannot use system directory: {directory}"
            )

        self._question_directory = normalized_path
        self.logger.info(f"Question directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Question directory set to {normalized_path}",
            'user_message': f"✅ Question directory set to {normalized_path}"
        }

    def get_question_directory(self) -> str:
        return self._question_directory

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = GameSettings(
            mode=self.DEFAULT_MODE,
            grid_size=self.DEFAULT_GRID_SIZE,
            time_limit=self.DEFAULT_TIME_LIMIT,
            feedback_dwell=self.DEFAULT_FEEDBACK_DWELL,
            picture_url=self.DEFAULT_PICTURE_URL
        )
        self._question_directory = self.DEFAULT_QUESTION_DIRECTORY
        self.logger.info("All settings reset to default values")

    def apply_config(self, game_config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``game`` section of config.json.

        Returns:
            User-facing messages for every value that was rejected
        """
        setters = {
            'default_mode': self.set_mode,
            'default_grid_size': self.set_grid_size,
            'default_time_limit': self.set_time_limit,
            'feedback_dwell': self.set_feedback_dwell,
            'picture_url': self.set_picture_url,
            'question_directory': self.set_question_directory,
        }
        rejected = []
        for key, setter in setters.items():
            if key in game_config:
                result = setter(game_config[key])
                if not result['success']:
                    rejected.append(f"{key}: {result['user_message']}")
        return rejected

    def build_game_config(self, question_bank: QuestionBank) -> GameConfig:
        """Build the configuration for a new session from the current settings."""
        return GameConfig(
            mode=self._settings.mode,
            grid_size=self._settings.grid_size,
            time_limit_seconds=self.get_effective_time_limit(),
            question_bank=question_bank,
            feedback_dwell_seconds=self._settings.feedback_dwell
        )

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if not isinstance(self._settings.mode, GameMode):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid game mode: {self._settings.mode}")

        if (not isinstance(self._settings.grid_size, int) or
                self._settings.grid_size < self.MIN_GRID_SIZE or
                self._settings.grid_size > self.MAX_GRID_SIZE):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid grid size: {self._settings.grid_size}")

        if (not isinstance(self._settings.time_limit, int) or
                self._settings.time_limit < self.MIN_TIME_LIMIT or
                self._settings.time_limit > self.MAX_TIME_LIMIT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid time limit: {self._settings.time_limit}")

        if not 0 <= self._settings.feedback_dwell <= self.MAX_FEEDBACK_DWELL:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid feedback dwell: {self._settings.feedback_dwell}")

        if not isinstance(self._question_directory, str) or not self._question_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question directory: {self._question_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a human-readable summary of current settings.

        Returns:
            Formatted string with current settings
        """
        size = self._settings.grid_size
        summary = (
            f"Mode: {self._settings.mode.value} | "
            f"Grid: {size}x{size} | "
            f"Timer: {self.get_effective_time_limit()} seconds"
        )
        if self._settings.mode is GameMode.SPEED:
            summary += " (speed)"
        return summary
