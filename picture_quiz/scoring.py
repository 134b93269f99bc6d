"""
Score tracking for solo and team games.
"""
import logging

from .models import GameMode, GameResult, ResultKind, ScoreSnapshot, Team

logger = logging.getLogger(__name__)


class ScoreKeeper:
    """
    Tracks a single score (solo and speed modes) or two team scores with
    turn alternation (team mode). Scores only ever increase.
    """

    def __init__(self, mode: GameMode, first_team: Team = Team.RED):
        self.mode = mode
        self._score = 0
        self._team_scores = {Team.RED: 0, Team.BLUE: 0}
        self._active_team = first_team

    @property
    def is_team_mode(self) -> bool:
        return self.mode is GameMode.TEAM

    @property
    def active_team(self):
        """The team whose turn it is, or None outside team mode."""
        return self._active_team if self.is_team_mode else None

    @property
    def score(self) -> int:
        return self._score

    def team_score(self, team: Team) -> int:
        return self._team_scores[team]

    def record_correct(self) -> None:
        if self.is_team_mode:
            self._team_scores[self._active_team] += 1
            logger.debug(f"Team {self._active_team.value} scored ({self._team_scores[self._active_team]})")
        else:
            self._score += 1
            logger.debug(f"Score is now {self._score}")

    def record_incorrect(self) -> None:
        pass

    def end_turn(self) -> None:
        if self.is_team_mode:
            self._active_team = self._active_team.other

    def winner(self) -> GameResult:
        if not self.is_team_mode:
            return GameResult(kind=ResultKind.SOLO, final_score=self._score)

        red = self._team_scores[Team.RED]
        blue = self._team_scores[Team.BLUE]
        if red > blue:
            return GameResult(kind=ResultKind.WINNER, winner=Team.RED)
        if blue > red:
            return GameResult(kind=ResultKind.WINNER, winner=Team.BLUE)
        return GameResult(kind=ResultKind.TIE)

    def snapshot(self) -> ScoreSnapshot:
        return ScoreSnapshot(
            mode=self.mode,
            score=self._score,
            red=self._team_scores[Team.RED],
            blue=self._team_scores[Team.BLUE],
            active_team=self.active_team
        )
