"""
Data manager for question bank JSON files.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .errors import InvalidQuestionError
from .models import Question, new_question_id
from .question_bank import QuestionBank


# Default arithmetic set for classroom play.
SAMPLE_QUESTIONS = [
    {"id": "1", "text": "What is 5 x 7?", "options": ["30", "35", "40", "45"], "correct_index": 1},
    {"id": "2", "text": "What is 48 divided by 6?", "options": ["6", "7", "8", "9"], "correct_index": 2},
    {"id": "3", "text": "What is 125 + 75?", "options": ["190", "200", "210", "220"], "correct_index": 1},
    {"id": "4", "text": "What is 300 - 150?", "options": ["100", "150", "200", "250"], "correct_index": 1},
    {"id": "5", "text": "A square has 5cm sides. What is its perimeter?",
     "options": ["15cm", "20cm", "25cm", "30cm"], "correct_index": 1},
    {"id": "6", "text": "What is 9 x 4?", "options": ["32", "34", "36", "38"], "correct_index": 2},
    {"id": "7", "text": "What is 81 divided by 9?", "options": ["7", "8", "9", "10"], "correct_index": 2},
    {"id": "8", "text": "How many grams are in 1kg?", "options": ["10g", "100g", "1000g", "10000g"], "correct_index": 2},
    {"id": "9", "text": "What is the largest 3-digit number?", "options": ["100", "900", "990", "999"], "correct_index": 3},
    {"id": "10", "text": "What is 15 x 2?", "options": ["25", "30", "35", "40"], "correct_index": 1},
]


class DataManager:
    """Manages loading, saving and validation of question bank files."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit

    def __init__(self, question_directory: str = "./questions/"):
        """
        Initialize DataManager with question directory path.

        Args:
            question_directory: Path to directory containing JSON question banks
        """
        self.question_directory = Path(question_directory)
        self.loaded_banks: Dict[str, QuestionBank] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self.fallback_bank_created = False

    def load_bank_files(self) -> Dict[str, QuestionBank]:
        """
        Load all JSON files from the question directory.

        Returns:
            Dictionary mapping bank names to QuestionBank objects
        """
        self.loaded_banks.clear()
        self.load_errors.clear()
        self.fallback_bank_created = False

        directory_result = self._ensure_question_directory()
        if not directory_result['success']:
            self.load_errors.append(directory_result['error'])
            return self._create_fallback_bank()

        scan_result = self._scan_bank_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            return self._create_fallback_bank()

        json_files = scan_result['files']

        # If no files found, create sample bank and provide guidance
        if not json_files:
            self.logger.warning(f"No JSON files found in {self.question_directory}")
            self.load_errors.append(f"No question files found in {self.question_directory}")
            return self._create_sample_bank()

        successful_loads = 0
        for json_file in json_files:
            load_result = self._load_bank_file_safely(json_file)
            if load_result['success']:
                successful_loads += 1
            else:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        if successful_loads == 0:
            self.logger.error("No question files could be loaded successfully")
            self.load_errors.append("All question files failed to load")
            return self._create_fallback_bank()

        self.logger.info(f"Successfully loaded {successful_loads} question banks")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_banks

    def _load_single_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and parse a single JSON file.

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                if self.validate_bank_structure(data):
                    return data
                else:
                    self.logger.error(f"Invalid question bank structure in {file_path}")
                    return None
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except FileNotFoundError:
            self.logger.error(f"Question file not found: {file_path}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read question file {file_path}: {e}")
            return None

    def validate_bank_structure(self, data: dict) -> bool:
        """
        Validate that JSON data has the correct question bank structure.

        Expected structure:
        {
            "questions": [
                {
                    "id": str,            # Optional
                    "text": str,
                    "options": [str, ...],
                    "correct_index": int
                }
            ]
        }

        An empty "questions" array is a valid, empty bank.

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Question bank must be a JSON object")
            return False

        if "questions" not in data:
            self.logger.error("Question bank must contain a 'questions' key")
            return False

        questions = data["questions"]
        if not isinstance(questions, list):
            self.logger.error("'questions' value must be an array")
            return False

        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be an object")
                return False

            for required in ("text", "options", "correct_index"):
                if required not in question_data:
                    self.logger.error(f"Question {i} missing '{required}' field")
                    return False

            if not isinstance(question_data["text"], str):
                self.logger.error(f"Question {i} 'text' field must be a string")
                return False

            if not isinstance(question_data["options"], list):
                self.logger.error(f"Question {i} 'options' field must be an array")
                return False

            correct_index = question_data["correct_index"]
            if isinstance(correct_index, bool) or not isinstance(correct_index, int):
                self.logger.error(f"Question {i} 'correct_index' field must be an integer")
                return False

            if "id" in question_data and not isinstance(question_data["id"], (str, int)):
                self.logger.error(f"Question {i} 'id' field must be a string")
                return False

        return True

    def _parse_questions(self, bank_data: dict) -> QuestionBank:
        """
        Parse validated bank data into a QuestionBank.

        Raises:
            InvalidQuestionError: If a question breaks the bank's rules
        """
        bank = QuestionBank()
        for question_data in bank_data["questions"]:
            question_id = question_data.get("id")
            bank.add(Question(
                text=question_data["text"],
                options=list(question_data["options"]),
                correct_index=question_data["correct_index"],
                id=str(question_id) if question_id is not None else new_question_id()
            ))
        return bank

    def save_bank(self, bank_name: str, bank: QuestionBank) -> Dict[str, Any]:
        """
        Write a bank to ``<question_directory>/<bank_name>.json``.

        Returns:
            Dictionary with success status and error message if applicable
        """
        directory_result = self._ensure_question_directory()
        if not directory_result['success']:
            return directory_result

        file_path = self.question_directory / f"{bank_name}.json"
        data = {
            "questions": [
                {
                    "id": q.id,
                    "text": q.text,
                    "options": list(q.options),
                    "correct_index": q.correct_index
                }
                for q in bank
            ]
        }
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Failed to save question bank {file_path}: {e}")
            return {
                'success': False,
                'error': f"Failed to save {file_path.name}: {e}"
            }

        self.loaded_banks[bank_name] = bank
        self.logger.info(f"Saved question bank '{bank_name}' with {len(bank)} questions")
        return {'success': True, 'path': str(file_path)}

    def get_available_banks(self) -> List[str]:
        return list(self.loaded_banks.keys())

    def get_bank(self, bank_name: str) -> Optional[QuestionBank]:
        """
        Retrieve a loaded question bank.

        Returns:
            The QuestionBank, or None if not loaded
        """
        return self.loaded_banks.get(bank_name)

    def bank_exists(self, bank_name: str) -> bool:
        return bank_name in self.loaded_banks

    def get_question_count(self, bank_name: str) -> int:
        bank = self.get_bank(bank_name)
        return len(bank) if bank else 0

    def _ensure_question_directory(self) -> Dict[str, Any]:
        """
        Ensure question directory exists.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not self.question_directory.exists():
                self.question_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created question directory: {self.question_directory}")

            if not os.access(self.question_directory, os.R_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot read from {self.question_directory}"
                }

            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot access {self.question_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.question_directory}: {e}"
            }

    def _scan_bank_files(self) -> Dict[str, Any]:
        """
        Scan question directory for JSON files.

        Returns:
            Dictionary with success status, files list, and error message if applicable
        """
        try:
            json_files = sorted(self.question_directory.glob("*.json"))
            return {
                'success': True,
                'files': json_files
            }
        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot read directory {self.question_directory}",
                'files': []
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.question_directory}: {e}",
                'files': []
            }

    def _load_bank_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single question bank file.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not json_file.exists():
                return {
                    'success': False,
                    'error': "File not found"
                }

            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            bank_data = self._load_single_file(json_file)
            if bank_data is None:
                return {
                    'success': False,
                    'error': "Invalid JSON structure or validation failed"
                }

            bank = self._parse_questions(bank_data)

            bank_name = json_file.stem
            self.loaded_banks[bank_name] = bank
            self.logger.info(f"Loaded question bank '{bank_name}' with {len(bank)} questions")

            return {'success': True}

        except InvalidQuestionError as e:
            return {
                'success': False,
                'error': f"Invalid question: {e}"
            }
        except PermissionError:
            return {
                'success': False,
                'error': "Permission denied"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

    def _create_sample_bank(self) -> Dict[str, QuestionBank]:
        """
        Create a sample question bank file when no files are found.

        Returns:
            Dictionary with the sample bank loaded
        """
        sample_bank = self._parse_questions({"questions": SAMPLE_QUESTIONS})
        result = self.save_bank("sample_questions", sample_bank)
        if not result['success']:
            self.logger.error(f"Failed to create sample question bank: {result['error']}")
            self.load_errors.append(f"Failed to create sample question bank: {result['error']}")
            return self._create_fallback_bank()

        self.logger.info(f"Loaded sample question bank with {len(sample_bank)} questions")
        return self.loaded_banks

    def _create_fallback_bank(self) -> Dict[str, QuestionBank]:
        """
        Create the sample bank in memory when file operations fail.

        Returns:
            Dictionary with the fallback bank loaded
        """
        self.loaded_banks["fallback_questions"] = self._parse_questions({"questions": SAMPLE_QUESTIONS})
        self.fallback_bank_created = True
        self.logger.warning("Created fallback question bank due to file loading failures")
        return self.loaded_banks

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def is_fallback_bank_active(self) -> bool:
        return self.fallback_bank_created

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_banks': len(self.loaded_banks),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'fallback_active': self.is_fallback_bank_active(),
            'question_directory': str(self.question_directory),
            'available_banks': list(self.loaded_banks.keys())
        }
