"""
Unit tests for the GameSession state machine.
"""
import unittest

from picture_quiz.errors import (
    InvalidConfigError,
    InvalidSelectionError,
    InvalidSizeError,
    InvalidStateError,
    InvalidSubmissionError,
    NoQuestionsError,
)
from picture_quiz.game_session import GameSession, SessionListener
from picture_quiz.models import (
    GameMode,
    IdleState,
    Outcome,
    Question,
    QuestionPendingState,
    ResolvingState,
    ResultKind,
    SessionPhase,
    SetupState,
    Team,
    WonState,
)
from picture_quiz.question_bank import QuestionBank
from tests.test_fixtures import RecordingListener, TestFixtures


def two_question_bank():
    return QuestionBank([
        Question("Q1", ["a", "b", "c"], 1, id="Q1"),
        Question("Q2", ["a", "b"], 0, id="Q2"),
    ])


class TestSessionStart(unittest.TestCase):
    """Test cases for starting a game."""

    def setUp(self):
        self.session = GameSession("test")

    def test_new_session_is_in_setup(self):
        self.assertEqual(self.session.current_state(), SetupState())
        self.assertEqual(self.session.grid_snapshot(), ())
        self.assertIsNone(self.session.score_snapshot())
        self.assertIsNone(self.session.current_question())
        self.assertEqual(self.session.remaining_time(), 0)

    def test_start_enters_idle(self):
        listener = RecordingListener()
        self.session.add_listener(listener)
        self.session.start(TestFixtures.create_game_config(grid_size=3, time_limit=12))

        self.assertIsInstance(self.session.current_state(), IdleState)
        self.assertEqual(self.session.grid_snapshot(), (False,) * 9)
        self.assertEqual(self.session.score_snapshot().score, 0)
        self.assertEqual(self.session.remaining_time(), 12)
        self.assertEqual(self.session.question_pointer, 0)
        self.assertEqual(listener.of_kind("state"), [SessionPhase.IDLE])

    def test_start_with_empty_bank(self):
        with self.assertRaises(NoQuestionsError):
            self.session.start(TestFixtures.create_game_config(bank=QuestionBank()))
        self.assertEqual(self.session.phase, SessionPhase.SETUP)

    def test_start_with_bad_grid_size(self):
        for size in (1, 6):
            with self.subTest(size=size):
                with self.assertRaises(InvalidSizeError):
                    self.session.start(TestFixtures.create_game_config(grid_size=size))
        self.assertEqual(self.session.phase, SessionPhase.SETUP)
        self.assertEqual(self.session.grid_snapshot(), ())

    def test_start_with_bad_time_limit(self):
        with self.assertRaises(InvalidConfigError):
            self.session.start(TestFixtures.create_game_config(time_limit=0))

    def test_start_while_playing_is_rejected(self):
        self.session.start(TestFixtures.create_game_config())
        self.session.select_cell(0)
        with self.assertRaises(InvalidStateError):
            self.session.start(TestFixtures.create_game_config())
        self.assertEqual(self.session.phase, SessionPhase.QUESTION_PENDING)

    def test_start_again_after_win(self):
        self.session.start(TestFixtures.create_game_config())
        self.session.force_win()
        self.session.start(TestFixtures.create_game_config(grid_size=3))

        self.assertEqual(self.session.phase, SessionPhase.IDLE)
        self.assertEqual(self.session.grid_snapshot(), (False,) * 9)


class TestSoloGame(unittest.TestCase):
    """Full solo games driven through the session commands."""

    def setUp(self):
        self.session = GameSession("solo")
        self.listener = RecordingListener()
        self.session.add_listener(self.listener)
        self.session.start(TestFixtures.create_game_config(grid_size=2, time_limit=15, bank=two_question_bank()))

    def test_answer_every_cell_to_win(self):
        """Q1 and Q2 alternate; four correct answers reveal the grid."""
        question = self.session.select_cell(0)
        state = self.session.current_state()
        self.assertIsInstance(state, QuestionPendingState)
        self.assertEqual(question.id, "Q1")
        self.assertEqual(state.deadline, 15)
        self.assertEqual(state.cell, 0)

        self.assertEqual(self.session.submit_answer(1), Outcome.CORRECT)
        self.assertTrue(self.session.grid_snapshot()[0])
        self.assertEqual(self.session.score_snapshot().score, 1)
        self.assertEqual(self.session.question_pointer, 1)
        self.assertIsInstance(self.session.current_state(), IdleState)

        self.assertEqual(self.session.select_cell(1).id, "Q2")
        self.assertEqual(self.session.submit_answer(0), Outcome.CORRECT)
        self.assertEqual(self.session.score_snapshot().score, 2)
        self.assertEqual(self.session.question_pointer, 0)

        self.assertEqual(self.session.select_cell(2).id, "Q1")
        self.session.submit_answer(1)
        self.assertEqual(self.session.select_cell(3).id, "Q2")
        self.session.submit_answer(0)

        state = self.session.current_state()
        self.assertIsInstance(state, WonState)
        self.assertEqual(state.summary.result.kind, ResultKind.SOLO)
        self.assertEqual(state.summary.result.final_score, 4)
        self.assertFalse(state.summary.forced)
        self.assertEqual(state.summary.revealed_count, 4)
        self.assertEqual(len(self.listener.of_kind("won")), 1)

    def test_last_reveal_wins_for_every_grid_size(self):
        for size in (2, 3, 4, 5):
            with self.subTest(size=size):
                session = GameSession(f"solo-{size}")
                session.start(TestFixtures.create_game_config(grid_size=size))
                total = size * size

                for cell in range(total - 1):
                    session.select_cell(cell)
                    self.assertEqual(session.submit_answer(0), Outcome.CORRECT)
                    self.assertEqual(session.phase, SessionPhase.IDLE)

                session.select_cell(total - 1)
                session.submit_answer(0)

                state = session.current_state()
                self.assertIsInstance(state, WonState)
                self.assertEqual(state.summary.result.final_score, total)
                self.assertEqual(state.summary.revealed_count, total)
                self.assertEqual(state.summary.total_cells, total)
                self.assertFalse(state.summary.forced)

    def test_wrong_answer(self):
        self.session.select_cell(0)
        self.assertEqual(self.session.submit_answer(0), Outcome.INCORRECT)

        self.assertEqual(self.session.grid_snapshot(), (False,) * 4)
        self.assertEqual(self.session.score_snapshot().score, 0)
        self.assertEqual(self.session.question_pointer, 1)
        self.assertEqual(self.session.phase, SessionPhase.IDLE)
        self.assertEqual(self.listener.of_kind("revealed"), [])

    def test_timeout_counts_as_incorrect(self):
        self.session.select_cell(2)
        for _ in range(14):
            self.session.tick()
        self.assertEqual(self.session.phase, SessionPhase.QUESTION_PENDING)
        self.assertEqual(self.session.remaining_time(), 1)

        self.session.tick()

        self.assertEqual(self.listener.of_kind("judged"), [Outcome.INCORRECT])
        self.assertEqual(self.session.grid_snapshot(), (False,) * 4)
        self.assertEqual(self.session.score_snapshot().score, 0)
        self.assertEqual(self.session.phase, SessionPhase.IDLE)
        self.assertEqual(self.session.question_pointer, 1)
        self.assertEqual(self.session.remaining_time(), 15)

    def test_ticks_are_reported(self):
        self.session.select_cell(0)
        self.session.tick()
        self.session.tick()
        self.assertEqual(self.listener.of_kind("tick"), [15, 14, 13])

    def test_submit_after_timeout_is_rejected(self):
        self.session.select_cell(0)
        for _ in range(15):
            self.session.tick()

        with self.assertRaises(InvalidSubmissionError):
            self.session.submit_answer(1)
        self.assertEqual(self.session.score_snapshot().score, 0)
        self.assertEqual(len(self.listener.of_kind("judged")), 1)

    def test_ticks_after_answer_are_ignored(self):
        self.session.select_cell(0)
        self.session.submit_answer(1)
        for _ in range(30):
            self.session.tick()

        self.assertEqual(len(self.listener.of_kind("judged")), 1)
        self.assertEqual(self.session.question_pointer, 1)
        self.assertEqual(self.session.phase, SessionPhase.IDLE)

    def test_event_order_for_correct_answer(self):
        self.session.select_cell(0)
        self.listener.events.clear()
        self.session.submit_answer(1)

        kinds = [(kind, value) for kind, value in self.listener.events]
        self.assertEqual(kinds, [
            ("state", SessionPhase.RESOLVING),
            ("revealed", 0),
            ("judged", Outcome.CORRECT),
            ("state", SessionPhase.IDLE),
        ])

    def test_selection_errors(self):
        self.session.select_cell(0)
        self.session.submit_answer(1)

        for cell in (0, -1, 4, "1", True):
            with self.subTest(cell=cell):
                with self.assertRaises(InvalidSelectionError):
                    self.session.select_cell(cell)

        self.session.select_cell(1)
        with self.assertRaises(InvalidSelectionError):
            self.session.select_cell(2)
        self.assertEqual(self.session.selected_cell, 1)

    def test_submission_errors(self):
        with self.assertRaises(InvalidSubmissionError):
            self.session.submit_answer(0)

        self.session.select_cell(0)
        for option in (-1, 3, "1", None):
            with self.subTest(option=option):
                with self.assertRaises(InvalidSubmissionError):
                    self.session.submit_answer(option)
        self.assertEqual(self.session.phase, SessionPhase.QUESTION_PENDING)

    def test_select_in_setup_is_rejected(self):
        session = GameSession()
        with self.assertRaises(InvalidSelectionError):
            session.select_cell(0)

    def test_reveals_are_monotonic(self):
        previous = self.session.grid_snapshot()
        answers = [1, 1, 0, 0, 1, 0]
        cells = iter(range(4))
        cell = next(cells)
        for answer in answers:
            if self.session.phase is SessionPhase.WON:
                break
            self.session.select_cell(cell)
            if self.session.submit_answer(answer) is Outcome.CORRECT:
                cell = next(cells, None)
            current = self.session.grid_snapshot()
            for before, after in zip(previous, current):
                self.assertTrue(after or not before)
            previous = current


class TestForceWin(unittest.TestCase):

    def setUp(self):
        self.session = GameSession()
        self.listener = RecordingListener()
        self.session.add_listener(self.listener)
        self.session.start(TestFixtures.create_game_config(grid_size=2))

    def test_force_win_with_hidden_cells(self):
        self.session.select_cell(0)
        self.session.submit_answer(0)
        self.session.select_cell(1)
        self.session.submit_answer(0)

        summary = self.session.force_win()

        self.assertTrue(summary.forced)
        self.assertEqual(summary.revealed_count, 2)
        self.assertEqual(summary.total_cells, 4)
        self.assertIsInstance(self.session.current_state(), WonState)
        with self.assertRaises(InvalidSelectionError):
            self.session.select_cell(2)

    def test_force_win_while_pending_stops_timer(self):
        self.session.select_cell(0)
        self.session.force_win()
        for _ in range(20):
            self.session.tick()

        self.assertEqual(self.listener.of_kind("judged"), [])
        self.assertEqual(self.session.phase, SessionPhase.WON)

    def test_force_win_twice(self):
        self.session.force_win()
        with self.assertRaises(InvalidStateError):
            self.session.force_win()
        self.assertEqual(len(self.listener.of_kind("won")), 1)

    def test_force_win_before_start(self):
        with self.assertRaises(InvalidStateError):
            GameSession().force_win()


class TestFeedbackDwell(unittest.TestCase):
    """With a dwell the session holds in Resolving until feedback finishes."""

    def setUp(self):
        self.session = GameSession()
        self.session.start(TestFixtures.create_game_config(grid_size=2, time_limit=5, dwell=1.5))

    def test_answer_holds_in_resolving(self):
        self.session.select_cell(0)
        self.session.submit_answer(0)

        state = self.session.current_state()
        self.assertIsInstance(state, ResolvingState)
        self.assertEqual(state.outcome, Outcome.CORRECT)
        self.assertEqual(self.session.last_outcome, Outcome.CORRECT)
        self.assertEqual(self.session.current_question().id, "q1")
        self.assertTrue(self.session.grid_snapshot()[0])
        self.assertEqual(self.session.question_pointer, 0)

        self.session.finish_feedback()

        self.assertEqual(self.session.phase, SessionPhase.IDLE)
        self.assertIsNone(self.session.last_outcome)
        self.assertEqual(self.session.question_pointer, 1)

    def test_commands_rejected_while_resolving(self):
        self.session.select_cell(0)
        self.session.submit_answer(1)

        with self.assertRaises(InvalidSubmissionError):
            self.session.submit_answer(0)
        with self.assertRaises(InvalidSelectionError):
            self.session.select_cell(1)
        with self.assertRaises(InvalidStateError):
            self.session.start(TestFixtures.create_game_config())
        self.assertEqual(self.session.phase, SessionPhase.RESOLVING)

    def test_expiry_holds_in_resolving(self):
        self.session.select_cell(0)
        for _ in range(5):
            self.session.tick()
        self.assertEqual(self.session.phase, SessionPhase.RESOLVING)

        with self.assertRaises(InvalidSubmissionError):
            self.session.submit_answer(0)
        self.session.tick()
        self.assertEqual(self.session.last_outcome, Outcome.INCORRECT)

    def test_finish_feedback_without_feedback(self):
        with self.assertRaises(InvalidStateError):
            self.session.finish_feedback()

    def test_last_cell_wins_after_feedback(self):
        for cell in range(4):
            self.session.select_cell(cell)
            self.session.submit_answer(0)
            self.session.finish_feedback()
        self.assertEqual(self.session.phase, SessionPhase.WON)


class TestTeamGame(unittest.TestCase):

    def setUp(self):
        self.session = GameSession()
        self.listener = RecordingListener()
        self.session.add_listener(self.listener)
        self.session.start(TestFixtures.create_game_config(mode=GameMode.TEAM, grid_size=2))

    def test_turn_parity(self):
        """After n resolutions the active team is red exactly when n is even."""
        answers = [0, 1, 1, 0, 0, 1]
        cell = 0
        for n, answer in enumerate(answers, start=1):
            self.session.select_cell(cell)
            if self.session.submit_answer(answer) is Outcome.CORRECT:
                cell += 1
            expected = Team.RED if n % 2 == 0 else Team.BLUE
            self.assertEqual(self.session.score_snapshot().active_team, expected)

        self.assertEqual(len(self.listener.of_kind("turn")), len(answers))

    def test_points_per_team(self):
        self.session.select_cell(0)
        self.session.submit_answer(0)  # red scores
        self.session.select_cell(1)
        self.session.submit_answer(1)  # blue misses
        self.session.select_cell(1)
        self.session.submit_answer(0)  # red scores

        scores = self.session.score_snapshot()
        self.assertEqual((scores.red, scores.blue), (2, 0))
        self.assertEqual(scores.active_team, Team.BLUE)

    def test_team_result(self):
        for cell in range(4):
            self.session.select_cell(cell)
            self.session.submit_answer(0)

        summary = self.session.current_state().summary
        self.assertEqual(summary.result.kind, ResultKind.TIE)
        self.assertEqual((summary.scores.red, summary.scores.blue), (2, 2))


class TestReturnToSetup(unittest.TestCase):

    def assert_fresh(self, session):
        fresh = GameSession()
        self.assertEqual(session.current_state(), fresh.current_state())
        self.assertEqual(session.grid_snapshot(), fresh.grid_snapshot())
        self.assertEqual(session.score_snapshot(), fresh.score_snapshot())
        self.assertEqual(session.current_question(), fresh.current_question())
        self.assertEqual(session.remaining_time(), fresh.remaining_time())
        self.assertEqual(session.question_pointer, fresh.question_pointer)
        self.assertEqual(session.last_outcome, fresh.last_outcome)
        self.assertEqual(session.selected_cell, fresh.selected_cell)

    def test_from_every_state(self):
        def idle(session):
            pass

        def pending(session):
            session.select_cell(0)
            session.tick()

        def resolving(session):
            session.select_cell(0)
            session.submit_answer(0)

        def won(session):
            session.force_win()

        for name, drive in (("idle", idle), ("pending", pending), ("resolving", resolving), ("won", won)):
            with self.subTest(state=name):
                session = GameSession()
                session.start(TestFixtures.create_game_config(dwell=1.0))
                drive(session)
                session.return_to_setup()
                self.assert_fresh(session)

    def test_from_setup(self):
        session = GameSession()
        session.return_to_setup()
        self.assert_fresh(session)

    def test_timer_does_not_fire_after_reset(self):
        session = GameSession()
        listener = RecordingListener()
        session.add_listener(listener)
        session.start(TestFixtures.create_game_config(time_limit=5))
        session.select_cell(0)
        session.return_to_setup()
        for _ in range(10):
            session.tick()

        self.assertEqual(listener.of_kind("judged"), [])
        self.assertEqual(session.phase, SessionPhase.SETUP)


class TestListenerIsolation(unittest.TestCase):

    def test_failing_listener_does_not_break_game(self):
        class Broken(SessionListener):
            def on_state_changed(self, state):
                raise RuntimeError("display failed")

        session = GameSession()
        recorder = RecordingListener()
        session.add_listener(Broken())
        session.add_listener(recorder)

        with self.assertLogs('picture_quiz.game_session', level='ERROR'):
            session.start(TestFixtures.create_game_config())
            session.select_cell(0)
            session.submit_answer(0)

        self.assertEqual(session.phase, SessionPhase.IDLE)
        self.assertEqual(recorder.of_kind("judged"), [Outcome.CORRECT])

    def test_remove_listener(self):
        session = GameSession()
        recorder = RecordingListener()
        session.add_listener(recorder)
        session.remove_listener(recorder)
        session.start(TestFixtures.create_game_config())
        self.assertEqual(recorder.events, [])


if __name__ == '__main__':
    unittest.main()
