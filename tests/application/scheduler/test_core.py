"""Tests for the scheduler core state machine and memory model."""

import itertools
import math
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.application.config import SchedulerConfig
from cadence.application.scheduler.core import SchedulerCore, forgetting_curve
from cadence.domain.errors import InvalidCardStateError, InvalidRatingError
from cadence.domain.scheduling.models import CardSchedulingState, LearningState, Rating
from cadence.domain.scheduling.parameters import ModelParameters


@pytest.fixture
def core(config):
    return SchedulerCore(config)


@pytest.fixture
def review_card(now):
    """A REVIEW card with stability 10 and difficulty 5, last seen 10 days ago."""
    return CardSchedulingState(
        card_id="r1",
        due_at=now,
        state=LearningState.REVIEW,
        difficulty=5.0,
        stability=10.0,
        last_review_at=now - timedelta(days=10),
        reps=5,
    )


def graduate(core, card, now):
    """Rate GOOD at each due time until the card reaches REVIEW."""
    t = now
    while card.state != LearningState.REVIEW:
        t = max(t, card.due_at)
        card = core.update(card, Rating.GOOD, t)
    return card, t


class TestForgettingCurve:
    def test_reference_point(self):
        assert forgetting_curve(10.0, 10.0) == pytest.approx(0.9)

    def test_fresh_memory(self):
        assert forgetting_curve(0.0, 5.0) == pytest.approx(1.0)

    def test_decays(self):
        assert forgetting_curve(20.0, 10.0) < forgetting_curve(5.0, 10.0)

    def test_no_stability(self):
        assert forgetting_curve(1.0, 0.0) == 0.0


class TestNewCard:
    @pytest.mark.parametrize("rating", list(Rating))
    def test_first_rating_enters_learning(self, core, now, rating):
        card = CardSchedulingState.new("c1", now)
        nxt = core.update(card, rating, now)

        assert nxt.state == LearningState.LEARNING
        assert nxt.step_index == 0
        assert nxt.reps == 1  # every rating counts, including the first
        assert nxt.lapses == 0
        assert nxt.last_review_at == now
        assert nxt.due_at == now + timedelta(minutes=1)
        assert nxt.stability == pytest.approx(ModelParameters().initial_stability(rating))
        assert nxt.difficulty == pytest.approx(5.0 - 0.3 * (int(rating) - 3))

    def test_first_rating_accepts_plain_int(self, core, now):
        card = CardSchedulingState.new("c1", now)
        assert core.update(card, 3, now) == core.update(card, Rating.GOOD, now)

    def test_new_card_has_no_retrievability(self, core, now):
        assert core.retrievability(CardSchedulingState.new("c1", now), now) == 0.0


class TestLearningLadder:
    def test_good_advances_then_graduates(self, core, now):
        card = core.update(CardSchedulingState.new("c1", now), Rating.GOOD, now)

        t1 = now + timedelta(minutes=1)
        card = core.update(card, Rating.GOOD, t1)
        assert card.state == LearningState.LEARNING
        assert card.step_index == 1
        assert card.due_at == t1 + timedelta(minutes=10)

        t2 = t1 + timedelta(minutes=10)
        card = core.update(card, Rating.GOOD, t2)
        assert card.state == LearningState.REVIEW
        assert card.step_index == 0
        assert card.stability > 0
        assert card.due_at >= t2 + timedelta(days=1)

    def test_graduation_interval_matches_stability(self, core, now):
        card, _ = graduate(core, CardSchedulingState.new("c1", now), now)
        interval_days = (card.due_at - card.last_review_at).total_seconds() / 86400
        # request_retention equals the reference retention, so interval == stability
        assert interval_days == pytest.approx(max(card.stability, 1.0))

    def test_again_resets_to_first_step(self, core, now):
        card = core.update(CardSchedulingState.new("c1", now), Rating.GOOD, now)
        card = core.update(card, Rating.GOOD, now + timedelta(minutes=1))
        assert card.step_index == 1

        t = now + timedelta(minutes=11)
        again = core.update(card, Rating.AGAIN, t)
        assert again.state == LearningState.LEARNING
        assert again.step_index == 0
        assert again.due_at == t + timedelta(minutes=1)
        assert again.difficulty == card.difficulty
        assert again.lapses == 0

    def test_hard_repeats_current_step(self, core, now):
        card = core.update(CardSchedulingState.new("c1", now), Rating.GOOD, now)
        card = core.update(card, Rating.GOOD, now + timedelta(minutes=1))

        t = now + timedelta(minutes=11)
        hard = core.update(card, Rating.HARD, t)
        assert hard.step_index == 1
        assert hard.due_at == t + timedelta(minutes=10)
        assert hard.difficulty == card.difficulty

    def test_easy_advances_like_good(self, core, now):
        card = core.update(CardSchedulingState.new("c1", now), Rating.GOOD, now)
        easy = core.update(card, Rating.EASY, now + timedelta(minutes=1))
        good = core.update(card, Rating.GOOD, now + timedelta(minutes=1))
        assert easy.step_index == good.step_index == 1
        assert easy.stability > good.stability

    def test_shortened_ladder_uses_last_step(self, now):
        core = SchedulerCore(SchedulerConfig(learning_steps=[1, 10]))
        card = CardSchedulingState(
            card_id="c1",
            due_at=now,
            state=LearningState.LEARNING,
            stability=3.0,
            last_review_at=now - timedelta(minutes=30),
            reps=4,
            step_index=5,
        )
        hard = core.update(card, Rating.HARD, now)
        assert hard.step_index == 1
        assert hard.due_at == now + timedelta(minutes=10)

        assert core.update(card, Rating.GOOD, now).state == LearningState.REVIEW

    def test_single_step_ladder_graduates_on_second_good(self, now):
        core = SchedulerCore(SchedulerConfig(learning_steps=[5]))
        card = core.update(CardSchedulingState.new("c1", now), Rating.GOOD, now)
        assert card.due_at == now + timedelta(minutes=5)
        card = core.update(card, Rating.GOOD, card.due_at)
        assert card.state == LearningState.REVIEW


class TestReview:
    def test_retrievability_at_stability(self, core, review_card, now):
        assert core.retrievability(review_card, now) == pytest.approx(0.9)

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_success_grows_stability(self, core, review_card, now, rating):
        nxt = core.update(review_card, rating, now)
        assert nxt.state == LearningState.REVIEW
        assert nxt.stability > review_card.stability
        assert nxt.reps == review_card.reps + 1
        assert nxt.lapses == review_card.lapses
        assert nxt.due_at > now + timedelta(days=1)

    def test_rating_orders_intervals(self, core, review_card, now):
        outcomes = core.preview(review_card, now)
        assert (
            outcomes[Rating.AGAIN].state.due_at
            < outcomes[Rating.HARD].state.due_at
            < outcomes[Rating.GOOD].state.due_at
            < outcomes[Rating.EASY].state.due_at
        )

    def test_difficulty_direction(self, core, review_card, now):
        outcomes = core.preview(review_card, now)
        assert outcomes[Rating.AGAIN].state.difficulty > outcomes[Rating.HARD].state.difficulty
        assert outcomes[Rating.HARD].state.difficulty > review_card.difficulty
        assert outcomes[Rating.GOOD].state.difficulty == pytest.approx(review_card.difficulty)
        assert outcomes[Rating.EASY].state.difficulty < review_card.difficulty

    def test_harder_cards_grow_slower(self, core, review_card, now):
        easy_card = replace(review_card, difficulty=2.0)
        hard_card = replace(review_card, difficulty=9.0)
        assert (
            core.update(easy_card, Rating.GOOD, now).stability
            > core.update(hard_card, Rating.GOOD, now).stability
        )

    def test_late_recall_grows_more(self, core, review_card, now):
        on_time = core.update(review_card, Rating.GOOD, now)
        late = core.update(review_card, Rating.GOOD, now + timedelta(days=20))
        assert late.stability > on_time.stability

    def test_again_lapses_into_relearning(self, core, review_card, now):
        good = core.update(review_card, Rating.GOOD, now)
        again = core.update(review_card, Rating.AGAIN, now)

        assert again.state == LearningState.RELEARNING
        assert again.lapses == review_card.lapses + 1
        assert again.step_index == 0
        assert again.stability < review_card.stability
        assert again.due_at == now + timedelta(minutes=10)
        assert again.due_at < good.due_at

    def test_early_review_keeps_stability(self, core, review_card):
        # Reviewed again the instant it was last seen: nothing was forgotten
        t = review_card.last_review_at
        nxt = core.update(review_card, Rating.GOOD, t)
        assert nxt.stability == pytest.approx(review_card.stability)

    def test_interval_clamped_to_maximum(self, now):
        core = SchedulerCore(SchedulerConfig(maximum_interval_days=30))
        card = CardSchedulingState(
            card_id="c1",
            due_at=now,
            state=LearningState.REVIEW,
            stability=500.0,
            last_review_at=now - timedelta(days=500),
            reps=10,
        )
        nxt = core.update(card, Rating.EASY, now)
        assert nxt.due_at == now + timedelta(days=30)

    def test_lower_retention_means_longer_intervals(self, review_card, now):
        strict = SchedulerCore(SchedulerConfig(request_retention=0.95))
        relaxed = SchedulerCore(SchedulerConfig(request_retention=0.8))
        assert (
            relaxed.update(review_card, Rating.GOOD, now).due_at
            > strict.update(review_card, Rating.GOOD, now).due_at
        )

    def test_next_interval_formula(self, now):
        core = SchedulerCore(SchedulerConfig(request_retention=0.8))
        expected = 10.0 * math.log(0.8) / math.log(0.9)
        assert core.next_interval_days(10.0) == pytest.approx(expected)
        assert core.next_interval_days(0.01) == 1.0


class TestRelearning:
    def test_graduates_with_penalised_stability(self, core, review_card, now):
        lapsed = core.update(review_card, Rating.AGAIN, now)
        t = lapsed.due_at
        back = core.update(lapsed, Rating.GOOD, t)

        assert back.state == LearningState.REVIEW
        assert back.stability == pytest.approx(lapsed.stability)
        assert back.stability < review_card.stability
        assert back.due_at >= t + timedelta(days=1)

    def test_again_in_relearning_restarts_ladder(self, core, review_card, now):
        lapsed = core.update(review_card, Rating.AGAIN, now)
        t = lapsed.due_at
        again = core.update(lapsed, Rating.AGAIN, t)

        assert again.state == LearningState.RELEARNING
        assert again.lapses == lapsed.lapses
        assert again.difficulty == lapsed.difficulty
        assert again.due_at == t + timedelta(minutes=10)


class TestContract:
    def test_invalid_rating(self, core, now):
        card = CardSchedulingState.new("c1", now)
        with pytest.raises(InvalidRatingError):
            core.update(card, 5, now)
        with pytest.raises(InvalidRatingError):
            core.update(card, 0, now)

    @pytest.mark.parametrize(
        "changes",
        [
            {"reps": 1},
            {"lapses": 2},
            {"difficulty": 11.0},
            {"difficulty": 0.5},
            {"step_index": -1},
            {"stability": -1.0},
        ],
    )
    def test_malformed_new_card(self, core, now, changes):
        card = replace(CardSchedulingState.new("c1", now), **changes)
        with pytest.raises(InvalidCardStateError):
            core.update(card, Rating.GOOD, now)

    def test_new_card_with_last_review(self, core, now):
        card = replace(CardSchedulingState.new("c1", now), last_review_at=now)
        with pytest.raises(InvalidCardStateError):
            core.update(card, Rating.GOOD, now)

    def test_review_without_stability(self, core, review_card, now):
        with pytest.raises(InvalidCardStateError):
            core.update(replace(review_card, stability=0.0), Rating.GOOD, now)

    def test_reviewed_card_without_history(self, core, review_card, now):
        with pytest.raises(InvalidCardStateError):
            core.update(replace(review_card, last_review_at=None), Rating.GOOD, now)
        with pytest.raises(InvalidCardStateError):
            core.update(replace(review_card, reps=0), Rating.GOOD, now)

    def test_rating_before_last_review(self, core, review_card):
        with pytest.raises(InvalidCardStateError):
            core.update(review_card, Rating.GOOD, review_card.last_review_at - timedelta(seconds=1))

    def test_learning_card_may_have_zero_stability(self, core, now):
        card = CardSchedulingState(
            card_id="c1",
            due_at=now,
            state=LearningState.LEARNING,
            stability=0.0,
            last_review_at=now - timedelta(minutes=1),
            reps=1,
        )
        nxt = core.update(card, Rating.GOOD, now)
        assert nxt.stability > 0


class TestReviewEvent:
    def test_event_snapshots(self, core, review_card, now):
        result = core.review(review_card, Rating.GOOD, now, session_id="s1", time_to_answer_ms=1500)
        event = result.event

        assert event.card_id == "r1"
        assert event.session_id == "s1"
        assert event.rating is Rating.GOOD
        assert event.reviewed_at == now
        assert event.state_before == LearningState.REVIEW
        assert event.state_after == LearningState.REVIEW
        assert event.stability_before == 10.0
        assert event.stability_after == result.state.stability
        assert event.difficulty_before == 5.0
        assert event.retrievability == pytest.approx(0.9)
        assert event.elapsed_days == pytest.approx(10.0)
        assert event.time_to_answer_ms == 1500
        assert now + timedelta(days=event.scheduled_days) == result.state.due_at

    def test_preview_does_not_touch_input(self, core, review_card, now):
        before = replace(review_card)
        outcomes = core.preview(review_card, now)
        assert set(outcomes) == set(Rating)
        assert review_card == before
        assert outcomes[Rating.GOOD].state == core.update(review_card, Rating.GOOD, now)


class TestProperties:
    SEQUENCES = list(itertools.product(list(Rating), repeat=4))

    @pytest.mark.parametrize("timing", ["on_due", "early"])
    def test_invariants_over_rating_sequences(self, core, now, timing):
        for sequence in self.SEQUENCES:
            card = CardSchedulingState.new("c1", now)
            t = now
            for i, rating in enumerate(sequence, start=1):
                if timing == "on_due":
                    t = max(t, card.due_at)
                else:
                    t = t + (card.due_at - t) / 2 if card.due_at > t else t

                first = core.update(card, rating, t)
                second = core.update(card, rating, t)
                assert first == second  # deterministic

                assert 1.0 <= first.difficulty <= 10.0
                assert first.stability > 0
                assert first.reps == i
                assert first.state != LearningState.NEW
                assert first.due_at > t
                if rating != Rating.AGAIN:
                    assert first.due_at >= card.due_at
                if first.state == LearningState.REVIEW:
                    assert first.due_at >= t + timedelta(days=1)
                if card.state == LearningState.REVIEW and rating == Rating.AGAIN:
                    assert first.state == LearningState.RELEARNING
                    assert first.lapses == card.lapses + 1
                else:
                    assert first.lapses == card.lapses
                if card.state in (LearningState.LEARNING, LearningState.RELEARNING):
                    assert first.difficulty == card.difficulty
                card = first

    def test_four_goods_reach_review_with_growing_due_dates(self, core, now):
        card = CardSchedulingState.new("c1", now)
        t = now
        due_dates = []
        for _ in range(4):
            t = max(t, card.due_at)
            card = core.update(card, Rating.GOOD, t)
            due_dates.append(card.due_at)

        assert card.state == LearningState.REVIEW
        assert due_dates == sorted(due_dates)
        assert len(set(due_dates)) == 4

    def test_long_review_run_keeps_growing(self, core, now):
        card, t = graduate(core, CardSchedulingState.new("c1", now), now)
        previous = card.due_at
        for _ in range(6):
            t = card.due_at
            card = core.update(card, Rating.GOOD, t)
            assert card.due_at > previous
            previous = card.due_at
