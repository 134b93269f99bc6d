"""
Unit tests for the QuestionBank class.
"""
import unittest

from picture_quiz.errors import EmptyBankError, InvalidQuestionError
from picture_quiz.models import Question
from picture_quiz.question_bank import QuestionBank
from tests.test_fixtures import TestFixtures


class TestQuestionBank(unittest.TestCase):
    """Test cases for question ordering and editing."""

    def setUp(self):
        self.bank = TestFixtures.create_sample_bank()

    def test_next_wraps_around(self):
        """Indexes past the end wrap modulo the bank length."""
        self.assertEqual(self.bank.next(0).id, "q1")
        self.assertEqual(self.bank.next(2).id, "q3")
        self.assertEqual(self.bank.next(3).id, "q1")
        self.assertEqual(self.bank.next(7).id, "q2")

    def test_next_on_empty_bank(self):
        with self.assertRaises(EmptyBankError):
            QuestionBank().next(0)

    def test_add_appends_in_order(self):
        question = Question("What is 9-3?", ["6", "5"], 0, id="q4")
        self.bank.add(question)

        self.assertEqual(len(self.bank), 4)
        self.assertIs(self.bank.next(3), question)

    def test_add_rejects_invalid_questions(self):
        """Test each validation rule."""
        invalid = [
            Question("", ["a", "b"], 0),
            Question("   ", ["a", "b"], 0),
            Question("Only one option?", ["a"], 0),
            Question("Blank option?", ["a", " "], 0),
            Question("Index too high?", ["a", "b"], 2),
            Question("Negative index?", ["a", "b"], -1),
            Question("Bool index?", ["a", "b"], True),
        ]
        for question in invalid:
            with self.subTest(text=question.text):
                with self.assertRaises(InvalidQuestionError):
                    self.bank.add(question)

        self.assertEqual(len(self.bank), 3)

    def test_option_count_limit(self):
        letters = [chr(ord("a") + i) for i in range(QuestionBank.MAX_OPTIONS + 1)]

        with self.assertRaises(InvalidQuestionError):
            self.bank.add(Question("Nine options?", letters, 0))

        self.bank.add(Question("Eight options?", letters[:QuestionBank.MAX_OPTIONS], 7, id="q8"))
        self.assertEqual(len(self.bank.get("q8").options), 8)

    def test_add_rejects_duplicate_id(self):
        with self.assertRaises(InvalidQuestionError):
            self.bank.add(Question("Again?", ["yes", "no"], 0, id="q1"))

    def test_generated_ids_are_unique(self):
        first = Question("A?", ["1", "2"], 0)
        second = Question("A?", ["1", "2"], 0)
        self.assertNotEqual(first.id, second.id)

    def test_remove(self):
        self.assertTrue(self.bank.remove("q2"))
        self.assertFalse(self.bank.remove("q2"))
        self.assertEqual([q.id for q in self.bank], ["q1", "q3"])

    def test_clear(self):
        self.bank.clear()
        self.assertEqual(len(self.bank), 0)
        self.assertEqual(self.bank.questions(), [])

    def test_questions_returns_copy(self):
        listed = self.bank.questions()
        listed.clear()
        self.assertEqual(len(self.bank), 3)


if __name__ == '__main__':
    unittest.main()
