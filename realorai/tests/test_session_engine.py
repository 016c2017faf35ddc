"""
Tests for the session engine.

Tests:
- Session lifecycle (start, next pair, submit, end)
- Daily and streak difficulty policies
- Completion rules per mode
- One completed daily challenge per player and date
- Pair statistics and image usage updates
- Error handling leaves the store untouched
"""

import threading

import pytest

from ..engine.errors import (
    DuplicateDailyAttempt,
    IntegrityViolation,
    NoPairsAvailable,
    PairNotFound,
    SessionAlreadyCompleted,
    SessionNotFound,
)
from ..engine.scoring import calculate_score
from ..engine.session_engine import (
    build_result,
    daily_difficulty,
    difficulty_for_streak,
)
from ..store import GameMode, GameRound, GameSession, PlayerChoice, SessionState


class TestDifficultyPolicies:
    """Tests for the pure difficulty helpers."""

    @pytest.mark.parametrize("streak,expected", [
        (0, 1), (2, 1), (3, 2), (6, 2), (7, 3), (11, 3),
        (12, 4), (19, 4), (20, 5), (100, 5),
    ])
    def test_streak_difficulty(self, streak, expected):
        assert difficulty_for_streak(streak) == expected

    def test_daily_no_levels(self):
        assert daily_difficulty([], 1) is None

    def test_daily_single_level(self):
        assert [daily_difficulty([4, 4], n) for n in (1, 2, 3)] == [4, 4, 4]

    def test_daily_two_levels(self):
        assert [daily_difficulty([4, 1], n) for n in (1, 2, 3)] == [1, 1, 4]

    def test_daily_three_or_more_levels(self):
        assert [daily_difficulty([5, 1, 3, 3], n) for n in (1, 2, 3)] == [1, 3, 5]
        assert [daily_difficulty([1, 2, 3, 4], n) for n in (1, 2, 3)] == [1, 3, 4]


class TestStart:
    """Tests for start."""

    def test_start_streak(self, engine, store, clock):
        session = engine.start(GameMode.STREAK, "ann")

        stored = store.get_session(session.session_id)
        assert stored.state is SessionState.IN_PROGRESS
        assert stored.rounds_completed == 0
        assert stored.current_streak == 0
        assert stored.start_time == clock.now
        assert stored.daily_challenge_date is None

    def test_start_daily_stamps_engine_date(self, engine):
        session = engine.start("daily", "ann")
        assert session.daily_challenge_date == "2024-03-15"

    def test_unknown_mode(self, engine):
        with pytest.raises(ValueError):
            engine.start("marathon")

    def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            engine.get_session("missing")
        with pytest.raises(SessionNotFound):
            engine.next_pair("missing")

    def test_unknown_sessions_leave_no_locks(self, engine, store, seeded_pairs):
        for i in range(1000):
            with pytest.raises(SessionNotFound):
                engine.next_pair(f"bogus-{i}")
            with pytest.raises(SessionNotFound):
                engine.submit_round(f"bogus-{i}", seeded_pairs[0].pair_id, "ai", 1000)
            with pytest.raises(SessionNotFound):
                engine.end(f"bogus-{i}")

        assert store._entity_locks == {}


class TestNextPair:
    """Tests for next_pair."""

    def test_daily_difficulty_rises(self, engine, seeded_pairs):
        session = engine.start("daily", "ann")

        targets = []
        for _ in range(3):
            shown = engine.next_pair(session.session_id)
            targets.append((shown.target_difficulty, shown.pair.pair.difficulty))
            engine.submit_round(session.session_id, shown.pair.pair.pair_id, "ai", 1000)

        assert targets == [(1, 1), (3, 3), (5, 5)]

    def test_streak_difficulty_follows_streak(self, engine, store, seeded_pairs):
        session = engine.start("streak")
        store.update_session(session.session_id, current_streak=8)

        shown = engine.next_pair(session.session_id)
        assert shown.target_difficulty == 3
        assert shown.pair.pair.difficulty == 3

    def test_next_pair_does_not_write(self, engine, store, seeded_pairs):
        session = engine.start("streak")
        before = store.dump()

        engine.next_pair(session.session_id)

        assert store.dump() == before

    def test_played_pairs_avoided_while_others_remain(self, engine, seeded_pairs, play_round):
        session = engine.start("streak")

        played = [play_round(session.session_id).round.pair_id for _ in range(len(seeded_pairs))]

        assert len(set(played)) == len(seeded_pairs)

    def test_repeats_allowed_once_everything_is_played(self, engine, seeded_pairs, play_round):
        session = engine.start("streak")
        for _ in range(len(seeded_pairs)):
            play_round(session.session_id)

        shown = engine.next_pair(session.session_id)
        assert shown.round_number == len(seeded_pairs) + 1
        assert shown.pair.pair.pair_id in {p.pair_id for p in seeded_pairs}

    def test_inactive_pairs_never_served(self, engine, make_pair, play_round):
        active = make_pair(1)
        make_pair(1, active=False)
        session = engine.start("streak")

        for _ in range(3):
            assert play_round(session.session_id).round.pair_id == active.pair_id

    def test_empty_catalog(self, engine):
        session = engine.start("streak")

        with pytest.raises(NoPairsAvailable) as exc:
            engine.next_pair(session.session_id)
        assert exc.value.catalog_empty
        assert exc.value.code == "NO_PAIRS_AVAILABLE"

    def test_only_inactive_pairs(self, engine, make_pair):
        make_pair(2, active=False)
        session = engine.start("daily")

        with pytest.raises(NoPairsAvailable):
            engine.next_pair(session.session_id)

    def test_no_matching_pairs_code(self):
        assert NoPairsAvailable(catalog_empty=False).code == "NO_MATCHING_PAIRS"

    def test_completed_session(self, engine, seeded_pairs, play_round):
        session = engine.start("streak")
        play_round(session.session_id, choice="real")

        with pytest.raises(SessionAlreadyCompleted):
            engine.next_pair(session.session_id)


class TestStreakMode:
    """Tests for streak sessions."""

    def test_correct_answers_build_streak(self, engine, seeded_pairs, play_round):
        session = engine.start("streak", "ann")

        for expected_streak in (1, 2, 3):
            outcome = play_round(session.session_id)
            assert outcome.is_correct
            assert outcome.session.current_streak == expected_streak
            assert not outcome.session_completed

    def test_points_use_streak_before_the_answer(self, engine, catalog, seeded_pairs, play_round):
        session = engine.start("streak")

        for streak_before in range(4):
            outcome = play_round(session.session_id, response_time=1500)
            pair = catalog.get_pair(outcome.round.pair_id)
            assert outcome.points_earned == calculate_score(
                True, 1500, pair.difficulty, streak_before
            )

    def test_miss_completes_session(self, engine, store, clock, seeded_pairs, play_round):
        session = engine.start("streak", "ann")
        play_round(session.session_id)
        play_round(session.session_id)
        clock.advance(seconds=30)

        outcome = play_round(session.session_id, choice="real", response_time=4000)

        assert not outcome.is_correct
        assert outcome.points_earned == 0
        assert outcome.session_completed
        assert outcome.session.is_completed
        assert outcome.session.end_time == clock.now

        result = outcome.game_result
        assert result.rounds_completed == 3
        assert result.current_streak == 2
        assert result.final_stats.correct_answers == 2
        assert result.final_stats.total_rounds == 3
        assert result.final_stats.accuracy_percentage == 66.67
        assert result.final_stats.average_response_time == 2000

    def test_submit_after_miss_rejected(self, engine, store, seeded_pairs, play_round):
        session = engine.start("streak")
        miss = play_round(session.session_id, choice="real")

        with pytest.raises(SessionAlreadyCompleted):
            engine.submit_round(session.session_id, miss.round.pair_id, "ai", 1000)
        assert len(store.list_rounds_by_session(session.session_id)) == 1

    def test_correct_answer_is_always_ai(self, engine, seeded_pairs, play_round):
        session = engine.start("streak")
        outcome = play_round(session.session_id, choice="ai")

        assert outcome.round.correct_answer is PlayerChoice.AI
        assert outcome.round.player_choice is PlayerChoice.AI


class TestDailyMode:
    """Tests for daily sessions."""

    def test_third_round_completes_whatever_the_answers(self, engine, seeded_pairs, play_round):
        session = engine.start("daily", "ann")

        first = play_round(session.session_id, choice="real")
        second = play_round(session.session_id, choice="real")
        assert not first.session_completed
        assert not second.session_completed

        third = play_round(session.session_id, choice="ai")
        assert third.session_completed
        assert third.game_result.rounds_completed == 3
        assert third.game_result.final_stats.correct_answers == 1

    def test_fourth_round_rejected(self, engine, seeded_pairs, play_round):
        session = engine.start("daily", "ann")
        for _ in range(3):
            last = play_round(session.session_id)

        with pytest.raises(SessionAlreadyCompleted):
            engine.submit_round(session.session_id, last.round.pair_id, "ai", 1000)

    def test_streak_not_advanced(self, engine, seeded_pairs, play_round):
        session = engine.start("daily")
        outcome = play_round(session.session_id)
        assert outcome.session.current_streak == 0

    def test_second_daily_same_day_rejected(self, engine, seeded_pairs, play_round):
        session = engine.start("daily", "ann")
        for _ in range(3):
            play_round(session.session_id)

        with pytest.raises(DuplicateDailyAttempt) as exc:
            engine.start("daily", "ann")
        assert exc.value.date == "2024-03-15"

    def test_next_day_allowed(self, engine, clock, seeded_pairs, play_round):
        session = engine.start("daily", "ann")
        for _ in range(3):
            play_round(session.session_id)

        clock.advance(days=1)
        assert engine.start("daily", "ann").daily_challenge_date == "2024-03-16"

    def test_other_players_and_anonymous_unaffected(self, engine, seeded_pairs, play_round):
        for player in ("ann", None):
            session = engine.start("daily", player)
            for _ in range(3):
                play_round(session.session_id)

        engine.start("daily", "bob")
        engine.start("daily", None)

    def test_daily_start_resumes_open_session(self, engine, store, seeded_pairs, play_round):
        """Starting today's daily again while it is open returns the same session."""
        first = engine.start("daily", "ann")
        play_round(first.session_id)

        again = engine.start("daily", "ann")

        assert again.session_id == first.session_id
        assert again.rounds_completed == 1
        assert len(store.list_sessions(player_id="ann", mode=GameMode.DAILY)) == 1

        play_round(again.session_id)
        assert play_round(again.session_id).session_completed
        with pytest.raises(DuplicateDailyAttempt):
            engine.start("daily", "ann")

    def test_second_open_daily_refuses_play(self, engine, store, clock, seeded_pairs, play_round):
        """A daily session whose slot is taken writes nothing."""
        first = engine.start("daily", "ann")
        stray = GameSession(
            session_id="stray",
            mode=GameMode.DAILY,
            start_time=clock(),
            player_id="ann",
            daily_challenge_date="2024-03-15",
        )
        store.create_session(stray)
        for _ in range(3):
            play_round(first.session_id)
        pair = seeded_pairs[0]
        before = store.dump()

        with pytest.raises(DuplicateDailyAttempt):
            engine.next_pair("stray")
        with pytest.raises(DuplicateDailyAttempt):
            engine.submit_round("stray", pair.pair_id, "ai", 1000)
        with pytest.raises(DuplicateDailyAttempt):
            engine.end("stray")

        assert store.dump() == before
        completed = store.list_sessions(player_id="ann", mode=GameMode.DAILY, is_completed=True)
        assert [s.session_id for s in completed] == [first.session_id]

    def test_daily_status(self, engine, seeded_pairs, play_round):
        assert engine.daily_status("ann").available

        session = engine.start("daily", "ann")
        for _ in range(3):
            play_round(session.session_id)

        status = engine.daily_status("ann")
        assert not status.available
        assert status.session_id == session.session_id
        assert status.date == "2024-03-15"


class TestSubmitRound:
    """Tests for submit_round bookkeeping and validation."""

    def test_pair_stats_and_usage_updated(self, engine, catalog, make_pair):
        pair = make_pair(2)
        session = engine.start("streak")

        engine.submit_round(session.session_id, pair.pair_id, "ai", 1200)

        updated = catalog.get_pair(pair.pair_id)
        assert updated.total_attempts == 1
        assert updated.correct_guesses == 1
        assert updated.success_rate == 100.0
        assert updated.average_response_time == 1200
        assert catalog.get_image(pair.ai_image_id).usage_count == 1
        assert catalog.get_image(pair.real_image_id).usage_count == 1

    def test_unknown_pair_writes_nothing(self, engine, store, seeded_pairs):
        session = engine.start("streak")
        before = store.dump()

        with pytest.raises(PairNotFound):
            engine.submit_round(session.session_id, "missing", "ai", 1000)
        assert store.dump() == before

    def test_invalid_choice(self, engine, store, seeded_pairs):
        session = engine.start("streak")
        with pytest.raises(ValueError):
            engine.submit_round(session.session_id, seeded_pairs[0].pair_id, "human", 1000)
        assert store.list_rounds() == []

    def test_negative_response_time(self, engine, seeded_pairs):
        session = engine.start("streak")
        with pytest.raises(ValueError):
            engine.submit_round(session.session_id, seeded_pairs[0].pair_id, "ai", -1)

    def test_unknown_session(self, engine, seeded_pairs):
        with pytest.raises(SessionNotFound):
            engine.submit_round("missing", seeded_pairs[0].pair_id, "ai", 1000)

    def test_inconsistent_history_fails_closed(self, engine, store, clock, seeded_pairs):
        session = engine.start("streak")
        store.create_round(GameRound(
            round_id="stray",
            session_id=session.session_id,
            pair_id=seeded_pairs[0].pair_id,
            player_choice=PlayerChoice.AI,
            correct_answer=PlayerChoice.AI,
            is_correct=True,
            response_time=100,
            points_earned=0,
            round_number=1,
            timestamp=clock.now,
        ))

        with pytest.raises(IntegrityViolation):
            engine.submit_round(session.session_id, seeded_pairs[1].pair_id, "ai", 1000)
        assert store.get_session(session.session_id).rounds_completed == 0

    def test_round_numbers_have_no_gaps(self, engine, store, seeded_pairs, play_round):
        session = engine.start("streak")
        for _ in range(8):
            play_round(session.session_id)
        play_round(session.session_id, choice="real")

        stored = store.get_session(session.session_id)
        rounds = store.list_rounds_by_session(session.session_id)
        assert stored.rounds_completed == len(rounds) == 9
        assert [r.round_number for r in rounds] == list(range(1, 10))

    def test_pair_counters_consistent_after_play(self, engine, store, seeded_pairs, play_round):
        for choices in (["ai", "ai", "real"], ["real"], ["ai", "ai", "ai", "real"]):
            session = engine.start("streak")
            for choice in choices:
                play_round(session.session_id, choice=choice)

        pairs = store.list_pairs()
        assert sum(p.total_attempts for p in pairs) == len(store.list_rounds())
        for pair in pairs:
            assert pair.correct_guesses <= pair.total_attempts
            expected = (
                round(100 * pair.correct_guesses / pair.total_attempts, 2)
                if pair.total_attempts else 0.0
            )
            assert pair.success_rate == expected

    def test_concurrent_submits_to_one_session(self, engine, store, seeded_pairs):
        """Round numbers and streak never interleave for one session."""
        session = engine.start("streak")
        pair_id = seeded_pairs[0].pair_id

        def worker():
            for _ in range(5):
                engine.submit_round(session.session_id, pair_id, "ai", 500)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = store.get_session(session.session_id)
        rounds = store.list_rounds_by_session(session.session_id)
        assert stored.rounds_completed == 40
        assert stored.current_streak == 40
        assert [r.round_number for r in rounds] == list(range(1, 41))
        assert store.get_pair(pair_id).total_attempts == 40


class TestEnd:
    """Tests for end."""

    def test_end_in_progress(self, engine, store, clock, seeded_pairs, play_round):
        session = engine.start("streak", "ann")
        play_round(session.session_id, response_time=1000)
        play_round(session.session_id, response_time=2001)
        clock.advance(minutes=2)

        result = engine.end(session.session_id)

        stored = store.get_session(session.session_id)
        assert stored.is_completed
        assert stored.end_time == clock.now
        assert result.is_completed
        assert result.rounds_completed == 2
        assert result.final_stats.accuracy_percentage == 100.0
        assert result.final_stats.average_response_time == 1501

    def test_end_without_rounds(self, engine):
        session = engine.start("streak")
        result = engine.end(session.session_id)

        assert result.final_stats.total_rounds == 0
        assert result.final_stats.accuracy_percentage == 0.0
        assert result.final_stats.average_response_time == 0

    def test_second_end_rejected_with_existing_result(self, engine, store, clock, seeded_pairs, play_round):
        """Ending twice keeps the first end time and reports the stored result."""
        session = engine.start("streak")
        play_round(session.session_id)
        first = engine.end(session.session_id)
        ended_at = store.get_session(session.session_id).end_time
        clock.advance(hours=1)

        with pytest.raises(SessionAlreadyCompleted) as exc:
            engine.end(session.session_id)

        assert exc.value.result == first
        assert store.get_session(session.session_id).end_time == ended_at

    def test_overrides(self, engine):
        session = engine.start("streak")
        result = engine.end(session.session_id, total_score=900, current_streak=4)

        assert result.total_score == 900
        assert result.current_streak == 4

    def test_unknown_override_rejected(self, engine, store):
        session = engine.start("streak")
        with pytest.raises(ValueError):
            engine.end(session.session_id, rounds_completed=7)
        assert not store.get_session(session.session_id).is_completed

    def test_end_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            engine.end("missing")

    def test_result_for_matches_build_result(self, engine, store, seeded_pairs, play_round):
        session = engine.start("daily")
        play_round(session.session_id)

        result = engine.result_for(session.session_id)
        expected = build_result(
            store.get_session(session.session_id),
            store.list_rounds_by_session(session.session_id),
        )
        assert result == expected
        assert not result.is_completed
