"""
Tests for the score calculator.

Tests:
- Reference scores
- Time bonus clamping
- Unbounded streak multiplier
- Input validation
- Rank lookup
"""

import pytest

from ..engine.scoring import calculate_score, score_breakdown, rank_for_score


class TestCalculateScore:
    """Tests for calculate_score."""

    def test_instant_answer_on_hardest_pair(self):
        """Instant correct answer at difficulty 5, no streak, earns 250."""
        assert calculate_score(True, 0, 5, 0) == 250

    def test_slow_answer_on_easiest_pair(self):
        """No time bonus is left at 30 seconds."""
        assert calculate_score(True, 30000, 1, 0) == 120

    def test_time_bonus_never_negative(self):
        """Answers slower than 30 seconds keep the base and difficulty points."""
        assert calculate_score(True, 45000, 2, 0) == 140
        assert calculate_score(True, 120000, 2, 0) == 140

    @pytest.mark.parametrize("response_time", [0, 1500, 30000, 90000])
    @pytest.mark.parametrize("difficulty", [1, 3, 5])
    @pytest.mark.parametrize("streak", [0, 4, 50])
    def test_incorrect_answer_scores_zero(self, response_time, difficulty, streak):
        """A wrong answer is worth nothing whatever the inputs."""
        assert calculate_score(False, response_time, difficulty, streak) == 0

    def test_fractional_seconds_are_floored_at_the_end(self):
        """1.25s leaves a 47.5 bonus; the total is floored once."""
        assert calculate_score(True, 1250, 1, 0) == 167

    def test_streak_multiplier(self):
        """Each streak step adds 10%."""
        assert calculate_score(True, 0, 1, 1) == 187
        assert calculate_score(True, 1500, 3, 2) == 248

    def test_streak_multiplier_has_no_cap(self):
        """A 40-streak multiplies by 5."""
        assert calculate_score(True, 0, 5, 40) == 1250
        assert calculate_score(True, 0, 5, 90) == 2500

    def test_pure(self):
        """Same inputs always give the same score."""
        scores = {calculate_score(True, 2200, 4, 3) for _ in range(20)}
        assert len(scores) == 1

    def test_negative_response_time_rejected(self):
        with pytest.raises(ValueError):
            calculate_score(True, -1, 3, 0)

    @pytest.mark.parametrize("difficulty", [0, 6])
    def test_difficulty_out_of_range_rejected(self, difficulty):
        with pytest.raises(ValueError):
            calculate_score(True, 1000, difficulty, 0)

    def test_negative_streak_rejected(self):
        with pytest.raises(ValueError):
            calculate_score(True, 1000, 3, -1)


class TestScoreBreakdown:
    """Tests for score_breakdown."""

    def test_components(self):
        """Breakdown exposes every part of the score."""
        breakdown = score_breakdown(True, 5000, 2, 3)

        assert breakdown.base_score == 100
        assert breakdown.difficulty_bonus == 40
        assert breakdown.time_bonus == 40.0
        assert breakdown.streak_multiplier == pytest.approx(1.3)
        assert breakdown.final_score == 234

    def test_incorrect_final_score(self):
        """Incorrect answers still report components but score zero."""
        breakdown = score_breakdown(False, 0, 5, 0)
        assert breakdown.final_score == 0
        assert breakdown.time_bonus == 50.0


class TestRankForScore:
    """Tests for rank_for_score."""

    def test_middle_score(self):
        info = rank_for_score(200, [300, 200, 100])
        assert info.rank == 2
        assert info.total_players == 3
        assert info.percentile == 66.67

    def test_ties_share_better_rank(self):
        info = rank_for_score(200, [200, 200, 100])
        assert info.rank == 1
        assert info.percentile == 100.0

    def test_below_everyone(self):
        info = rank_for_score(50, [300, 200])
        assert info.rank == 3
        assert info.percentile == 0.0

    def test_no_scores(self):
        info = rank_for_score(10, [])
        assert info.rank == 1
        assert info.total_players == 0
