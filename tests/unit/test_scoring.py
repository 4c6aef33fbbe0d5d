"""Scoring engine tests — amounts must be exact integer mCurio."""

from datetime import datetime, timedelta, timezone

import pytest

from curio.errors import InvalidEventKind, MissingContext
from curio.rewards.scoring import (
    EventKind,
    attempt_multiplier_pct,
    attempt_warning,
    build_idempotency_key,
    clamp_attempt,
    compute_award,
    curio_range,
    default_scope,
    format_mcurio,
    mcurio_to_curio,
    scope_idempotency_key,
    teach_back_bonus_points,
    validate_context,
)


def _quiz(difficulty="deep", score=80, attempt=1, **extra):
    ctx = {"difficulty": difficulty, "score_percent": score, "attempt_number": attempt, "course_id": "c1"}
    ctx.update(extra)
    return compute_award(EventKind.QUIZ_PASSED, ctx)


class TestFlatAwards:
    """Flat-rate events are a table lookup."""

    def test_section_completed_is_5000(self):
        result = compute_award("section_completed", {"course_id": "c1", "section_id": "s1"})
        assert result.amount_mcurio == 5000
        assert result.breakdown["flat_mcurio"] == 5000

    def test_question_asked(self):
        assert compute_award("question_asked").amount_mcurio == 1000

    def test_daily_checkin(self):
        assert compute_award(EventKind.DAILY_CHECKIN).amount_mcurio == 30_000

    def test_streak_maintained(self):
        assert compute_award(EventKind.STREAK_MAINTAINED).amount_mcurio == 2000

    def test_every_kind_is_non_negative(self):
        for kind in EventKind:
            if kind is EventKind.QUIZ_PASSED:
                amount = _quiz().amount_mcurio
            elif kind is EventKind.TEACH_BACK_BONUS:
                amount = compute_award(kind, {"bonus_points": 0}).amount_mcurio
            else:
                amount = compute_award(kind).amount_mcurio
            assert amount >= 0


class TestQuizAward:
    """Quiz award is base * attempt multiplier [+ perfect bonus]."""

    def test_perfect_bonus_boundary(self):
        assert _quiz("skim", 100, 1).amount_mcurio == 12_000
        assert _quiz("skim", 99, 1).amount_mcurio == 10_000

    def test_bases(self):
        assert _quiz("skim").amount_mcurio == 10_000
        assert _quiz("solid").amount_mcurio == 25_000
        assert _quiz("deep").amount_mcurio == 60_000

    def test_attempt_decay(self):
        amounts = [_quiz("deep", 80, n).amount_mcurio for n in (1, 2, 3, 4)]
        assert amounts == [60_000, 30_000, 15_000, 0]
        assert amounts[0] > amounts[1] > amounts[2] > amounts[3] == 0

    def test_attempt_beyond_four_earns_nothing(self):
        assert _quiz("deep", 100, 9).amount_mcurio == 0

    def test_no_perfect_bonus_when_attempt_yields_zero(self):
        result = _quiz("deep", 100, 4)
        assert result.breakdown["perfect_bonus"] == 0

    def test_non_positive_attempt_counts_as_first(self):
        assert _quiz("solid", 80, 0).amount_mcurio == 25_000
        assert _quiz("solid", 80, -3).amount_mcurio == 25_000
        assert clamp_attempt(-1) == 1
        assert clamp_attempt(12) == 4

    def test_perfect_bonus_scales_with_attempt(self):
        # solid, 2nd attempt: 12500 + floor(25000 * 0.2 * 0.5) = 12500 + 2500
        assert _quiz("solid", 100, 2).amount_mcurio == 15_000

    def test_perfect_bonus_floors(self):
        # skim, 3rd attempt: 2500 + floor(10000 * 0.2 * 0.25) = 2500 + 500
        assert _quiz("skim", 100, 3).amount_mcurio == 3000

    def test_daily_course_multiplier(self):
        result = _quiz("skim", 100, 1, daily_course_number=1)
        assert result.breakdown["daily_multiplier_pct"] == 200
        assert result.amount_mcurio == 20_000 + 4000

    def test_daily_course_multiplier_after_third_course(self):
        assert _quiz("skim", 80, 1, daily_course_number=7).amount_mcurio == 10_000

    def test_breakdown_records_terms(self):
        result = _quiz("deep", 100, 2)
        bd = result.breakdown
        assert bd["difficulty_base"] == 60_000
        assert bd["attempt_multiplier_pct"] == 50
        assert bd["attempt_penalty"] == 30_000
        assert bd["perfect_bonus"] == 6000
        assert bd["final_mcurio"] == result.amount_mcurio == 36_000

    def test_amount_is_int(self):
        assert isinstance(_quiz("skim", 100, 3).amount_mcurio, int)

    def test_attempt_multiplier_table(self):
        assert [attempt_multiplier_pct(n) for n in (1, 2, 3, 4, 5)] == [100, 50, 25, 0, 0]


class TestTeachBack:
    def test_bonus_points_to_mcurio(self):
        assert compute_award("teach_back_bonus", {"bonus_points": 35}).amount_mcurio == 35_000

    def test_bonus_points_rule(self):
        evaluations = [
            {"overall_score": 4, "gold_star": True, "simplicity": 5},
            {"overall_score": 3, "gold_star": False, "simplicity": 5},
        ]
        assert teach_back_bonus_points(evaluations) == 35 + 5 + 10

    def test_no_simplicity_bonus_when_any_below_five(self):
        evaluations = [{"overall_score": 2, "simplicity": 4}]
        assert teach_back_bonus_points(evaluations) == 10

    def test_empty_evaluations(self):
        assert teach_back_bonus_points([]) == 0

    def test_bonus_points_capped(self):
        with pytest.raises(MissingContext):
            compute_award("teach_back_bonus", {"bonus_points": 10**12})

    def test_bonus_points_at_cap_accepted(self):
        assert compute_award("teach_back_bonus", {"bonus_points": 160}).amount_mcurio == 160_000

    def test_negative_bonus_points_rejected(self):
        with pytest.raises(MissingContext):
            compute_award("teach_back_bonus", {"bonus_points": -5})

    def test_points_derived_from_evaluations(self):
        result = compute_award(
            "teach_back_bonus",
            {"evaluations": [{"overall_score": 4, "gold_star": True, "simplicity": 5}]},
        )
        assert result.amount_mcurio == (20 + 5 + 10) * 1000

    def test_evaluations_out_of_range_rejected(self):
        with pytest.raises(MissingContext):
            compute_award("teach_back_bonus", {"evaluations": [{"overall_score": 50, "simplicity": 5}]})

    def test_too_many_evaluations_rejected(self):
        evaluation = {"overall_score": 5, "gold_star": True, "simplicity": 5}
        with pytest.raises(MissingContext):
            compute_award("teach_back_bonus", {"evaluations": [evaluation] * 6})

    def test_max_evaluations_stay_within_cap(self):
        evaluation = {"overall_score": 5, "gold_star": True, "simplicity": 5}
        assert compute_award("teach_back_bonus", {"evaluations": [evaluation] * 5}).amount_mcurio == 160_000


class TestErrors:
    def test_unknown_kind(self):
        with pytest.raises(InvalidEventKind):
            compute_award("lottery_win", {})

    def test_quiz_without_difficulty(self):
        with pytest.raises(MissingContext):
            compute_award("quiz_passed", {"score_percent": 90, "course_id": "c1"})

    def test_quiz_with_bad_difficulty(self):
        with pytest.raises(MissingContext):
            compute_award("quiz_passed", {"difficulty": "extreme", "score_percent": 90, "course_id": "c1"})

    def test_score_out_of_range(self):
        with pytest.raises(MissingContext):
            compute_award("quiz_passed", {"difficulty": "skim", "score_percent": 101, "course_id": "c1"})

    def test_teach_back_without_points(self):
        with pytest.raises(MissingContext):
            compute_award("teach_back_bonus", {})

    def test_validate_context_reports_field(self):
        with pytest.raises(MissingContext, match="difficulty"):
            validate_context(EventKind.QUIZ_PASSED, {"score_percent": 50, "course_id": "c1"})


class TestIdempotencyKeys:
    def test_key_shape(self):
        assert build_idempotency_key("daily_checkin", "acct-1", "2026-03-01") == "daily_checkin:acct-1:2026-03-01"

    def test_key_rejects_unknown_kind(self):
        with pytest.raises(InvalidEventKind):
            build_idempotency_key("bogus", "acct-1", "x")

    def test_checkin_scope_is_utc_day(self):
        now = datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)
        ctx = validate_context(EventKind.DAILY_CHECKIN, {})
        assert default_scope(EventKind.DAILY_CHECKIN, ctx, now) == "2026-03-01"

    def test_checkin_scope_converts_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        now = datetime(2026, 3, 10, 22, 0, tzinfo=eastern)
        ctx = validate_context(EventKind.DAILY_CHECKIN, {})
        assert default_scope(EventKind.DAILY_CHECKIN, ctx, now) == "2026-03-11"
        assert default_scope(EventKind.STREAK_MAINTAINED, ctx, now) == "2026-03-11"

    def test_quiz_scope_is_attempt(self):
        ctx = validate_context(
            EventKind.QUIZ_PASSED,
            {"difficulty": "skim", "score_percent": 80, "course_id": "c9", "attempt_number": 2},
        )
        assert default_scope(EventKind.QUIZ_PASSED, ctx) == "c9:2"

    def test_quiz_scope_prefers_attempt_id(self):
        ctx = validate_context(
            EventKind.QUIZ_PASSED,
            {"difficulty": "skim", "score_percent": 80, "course_id": "c9", "attempt_id": "att-77"},
        )
        assert default_scope(EventKind.QUIZ_PASSED, ctx) == "att-77"

    def test_section_scope(self):
        ctx = validate_context(EventKind.SECTION_COMPLETED, {"course_id": "c1", "section_id": "s3"})
        assert default_scope(EventKind.SECTION_COMPLETED, ctx) == "c1:s3"

    def test_missing_natural_scope(self):
        ctx = validate_context(EventKind.QUESTION_ASKED, {})
        with pytest.raises(MissingContext):
            default_scope(EventKind.QUESTION_ASKED, ctx)


class TestScopedKeys:
    def test_bare_key_gets_account_prefix(self):
        assert scope_idempotency_key("question_asked", "A", "q-1") == "question_asked:A:q-1"

    def test_natural_key_kept(self):
        key = build_idempotency_key("daily_checkin", "B", "2026-03-10")
        assert scope_idempotency_key("daily_checkin", "B", key) == key

    def test_other_accounts_key_cannot_collide(self):
        foreign = build_idempotency_key("daily_checkin", "B", "2026-03-10")
        scoped = scope_idempotency_key("question_asked", "A", foreign)
        assert scoped.startswith("question_asked:A:")
        assert scoped != foreign

    def test_prefix_match_is_exact_on_account(self):
        # "A" must not accept a key that belongs to "AB"
        assert scope_idempotency_key("question_asked", "A", "question_asked:AB:x") == (
            "question_asked:A:question_asked:AB:x"
        )


class TestDisplayHelpers:
    def test_mcurio_to_curio(self):
        assert mcurio_to_curio(12_500) == 12.5

    def test_format(self):
        assert format_mcurio(12_000) == "12.0 Curio"

    def test_curio_range(self):
        assert curio_range("deep") == {"min": 0, "max": 60_000, "max_with_bonus": 72_000}

    def test_attempt_warning(self):
        assert attempt_warning(0) is None
        assert "50%" in attempt_warning(1)
        assert "25%" in attempt_warning(2)
        assert "No Curio" in attempt_warning(3)
