"""Curio scoring engine — pure functions, no I/O.

All amounts are integer mCurio (1 Curio = 1000 mCurio). Multipliers are kept
as integer percentages so every intermediate step floors on integers; floats
only appear in the display helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from curio.errors import InvalidEventKind, MissingContext

MCURIO_PER_CURIO = 1000


class EventKind(str, Enum):
    QUESTION_ASKED = "question_asked"
    COURSE_STARTED = "course_started"
    SECTION_COMPLETED = "section_completed"
    LESSON_COMPLETED = "lesson_completed"
    QUIZ_PASSED = "quiz_passed"
    ELI5_PASSED = "eli5_passed"
    STREAK_MAINTAINED = "streak_maintained"
    DAILY_CHECKIN = "daily_checkin"
    TEACH_BACK_BONUS = "teach_back_bonus"


Difficulty = Literal["skim", "solid", "deep"]

FLAT_AMOUNTS_MCURIO: dict[EventKind, int] = {
    EventKind.QUESTION_ASKED: 1_000,
    EventKind.COURSE_STARTED: 5_000,
    EventKind.SECTION_COMPLETED: 5_000,
    EventKind.LESSON_COMPLETED: 5_000,
    EventKind.STREAK_MAINTAINED: 2_000,
    EventKind.DAILY_CHECKIN: 30_000,
    EventKind.ELI5_PASSED: 25_000,
}

QUIZ_BASE_MCURIO: dict[str, int] = {
    "skim": 10_000,
    "solid": 25_000,
    "deep": 60_000,
}

# Attempt 1 earns full value, 4+ earns nothing.
ATTEMPT_MULTIPLIER_PCT: dict[int, int] = {1: 100, 2: 50, 3: 25, 4: 0}

# First courses of the day are worth more; 4th and later get no bonus.
DAILY_COURSE_MULTIPLIER_PCT: dict[int, int] = {1: 200, 2: 150, 3: 125, 4: 100}

PERFECT_BONUS_PCT = 20

# Teach-back evaluates five concepts, each scored 1-5 overall:
# 5 * 5 * 5 + 5 gold stars * 5 + 10 for perfect simplicity.
TEACH_BACK_CONCEPTS = 5
MAX_TEACH_BACK_BONUS_POINTS = TEACH_BACK_CONCEPTS * 5 * 5 + TEACH_BACK_CONCEPTS * 5 + 10


# ---------------------------------------------------------------------------
# Context shapes
# ---------------------------------------------------------------------------


class QuizContext(BaseModel):
    difficulty: Difficulty
    score_percent: int = Field(..., ge=0, le=100)
    course_id: str = Field(..., min_length=1, max_length=128)
    attempt_number: int = 1
    attempt_id: str | None = None
    daily_course_number: int | None = None


class TeachBackEvaluation(BaseModel):
    overall_score: float = Field(..., ge=0, le=5)
    simplicity: int = Field(..., ge=1, le=5)
    gold_star: bool = False


class TeachBackContext(BaseModel):
    """Either the evaluator's per-concept scores or its precomputed points."""

    bonus_points: int | None = Field(None, ge=0, le=MAX_TEACH_BACK_BONUS_POINTS)
    evaluations: list[TeachBackEvaluation] | None = Field(None, min_length=1, max_length=TEACH_BACK_CONCEPTS)
    submission_id: str | None = None
    topic: str | None = None

    @model_validator(mode="after")
    def _require_points_or_evaluations(self) -> TeachBackContext:
        if self.bonus_points is None and self.evaluations is None:
            raise ValueError("bonus_points or evaluations is required")
        return self

    def points(self) -> int:
        if self.evaluations is not None:
            return teach_back_bonus_points([e.model_dump() for e in self.evaluations])
        return self.bonus_points or 0


class CourseContext(BaseModel):
    course_id: str | None = None


class SectionContext(BaseModel):
    course_id: str | None = None
    section_id: str | None = None


class QuestionContext(BaseModel):
    question_id: str | None = None


class CheckinContext(BaseModel):
    trigger: str = Field("manual", max_length=32)


class StreakContext(BaseModel):
    pass


CONTEXT_MODELS: dict[EventKind, type[BaseModel]] = {
    EventKind.QUESTION_ASKED: QuestionContext,
    EventKind.COURSE_STARTED: CourseContext,
    EventKind.SECTION_COMPLETED: SectionContext,
    EventKind.LESSON_COMPLETED: CourseContext,
    EventKind.QUIZ_PASSED: QuizContext,
    EventKind.ELI5_PASSED: CourseContext,
    EventKind.STREAK_MAINTAINED: StreakContext,
    EventKind.DAILY_CHECKIN: CheckinContext,
    EventKind.TEACH_BACK_BONUS: TeachBackContext,
}


@dataclass
class AwardComputation:
    """Amount plus the audit breakdown. The breakdown is metadata only."""

    kind: EventKind
    amount_mcurio: int
    breakdown: dict[str, Any] = field(default_factory=dict)
    context: BaseModel | None = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def parse_event_kind(value: str | EventKind) -> EventKind:
    """Coerce a raw event kind, raising InvalidEventKind for anything unknown."""
    if isinstance(value, EventKind):
        return value
    try:
        return EventKind(value)
    except ValueError:
        raise InvalidEventKind(f"Unknown event kind: {value!r}") from None


def validate_context(kind: EventKind, context: dict[str, Any] | None) -> BaseModel:
    """Validate the raw context against the shape required by the event kind."""
    model = CONTEXT_MODELS[kind]
    try:
        return model.model_validate(context or {})
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MissingContext(f"Invalid context for {kind.value}: {fields}") from e


# ---------------------------------------------------------------------------
# Multipliers
# ---------------------------------------------------------------------------


def clamp_attempt(attempt_number: int) -> int:
    """Clamp to [1, 4]; zero or negative attempts count as the first."""
    return min(max(attempt_number, 1), 4)


def attempt_multiplier_pct(attempt_number: int) -> int:
    return ATTEMPT_MULTIPLIER_PCT[clamp_attempt(attempt_number)]


def daily_course_multiplier_pct(daily_course_number: int | None) -> int:
    if daily_course_number is None:
        return DAILY_COURSE_MULTIPLIER_PCT[4]
    return DAILY_COURSE_MULTIPLIER_PCT[min(max(daily_course_number, 1), 4)]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def compute_quiz_award(ctx: QuizContext) -> tuple[int, dict[str, Any]]:
    """Quiz award: base * attempt multiplier [* daily multiplier] + perfect bonus."""
    base = QUIZ_BASE_MCURIO[ctx.difficulty]
    attempt = clamp_attempt(ctx.attempt_number)
    attempt_pct = ATTEMPT_MULTIPLIER_PCT[attempt]
    daily_pct = daily_course_multiplier_pct(ctx.daily_course_number)

    after_attempt = base * attempt_pct // 100
    after_daily = after_attempt * daily_pct // 100

    perfect_bonus = 0
    if ctx.score_percent == 100 and after_daily > 0:
        perfect_bonus = base * PERFECT_BONUS_PCT * attempt_pct * daily_pct // 1_000_000

    total = after_daily + perfect_bonus
    breakdown = {
        "type": EventKind.QUIZ_PASSED.value,
        "difficulty": ctx.difficulty,
        "difficulty_base": base,
        "score_percent": ctx.score_percent,
        "attempt_number": attempt,
        "attempt_multiplier_pct": attempt_pct,
        "attempt_penalty": base - after_attempt,
        "daily_course_number": ctx.daily_course_number,
        "daily_multiplier_pct": daily_pct,
        "daily_bonus": after_daily - after_attempt,
        "perfect_bonus": perfect_bonus,
        "final_mcurio": total,
    }
    return total, breakdown


def compute_award(event_kind: str | EventKind, context: dict[str, Any] | None = None) -> AwardComputation:
    """Convert an activity event into an mCurio amount and its breakdown.

    Raises InvalidEventKind for unknown kinds and MissingContext when a
    parametric event lacks required input. Never has side effects.
    """
    kind = parse_event_kind(event_kind)
    ctx = validate_context(kind, context)

    if kind is EventKind.QUIZ_PASSED:
        amount, breakdown = compute_quiz_award(ctx)  # type: ignore[arg-type]
    elif kind is EventKind.TEACH_BACK_BONUS:
        points = ctx.points()  # type: ignore[attr-defined]
        amount = points * MCURIO_PER_CURIO
        breakdown = {
            "type": kind.value,
            "bonus_points": points,
            "from_evaluations": ctx.evaluations is not None,  # type: ignore[attr-defined]
            "final_mcurio": amount,
        }
    else:
        amount = FLAT_AMOUNTS_MCURIO[kind]
        breakdown = {"type": kind.value, "flat_mcurio": amount, "final_mcurio": amount}

    return AwardComputation(kind=kind, amount_mcurio=amount, breakdown=breakdown, context=ctx)


def teach_back_bonus_points(evaluations: list[dict[str, Any]]) -> int:
    """Bonus points for a teach-back evaluation.

    Sum of overall scores * 5, +5 per gold star, +10 when every simplicity
    score is a perfect 5.
    """
    if not evaluations:
        return 0
    points = sum(e.get("overall_score", 0) for e in evaluations) * 5
    points += 5 * sum(1 for e in evaluations if e.get("gold_star"))
    if all(e.get("simplicity") == 5 for e in evaluations):
        points += 10
    return int(points)


# ---------------------------------------------------------------------------
# Idempotency keys
# ---------------------------------------------------------------------------


def build_idempotency_key(kind: str | EventKind, account_id: str, scope: str) -> str:
    """Deterministic key: '<kind>:<account>:<natural scope>'."""
    return f"{parse_event_kind(kind).value}:{account_id}:{scope}"


def scope_idempotency_key(kind: str | EventKind, account_id: str, key: str) -> str:
    """Bind a caller-supplied key to its account and event kind.

    Keys already carrying the '<kind>:<account>:' prefix are kept as they are,
    so a natural key sent explicitly matches the one derived by default.
    """
    prefix = build_idempotency_key(kind, account_id, "")
    if key.startswith(prefix):
        return key
    return prefix + key


def default_scope(kind: EventKind, ctx: BaseModel, now: datetime | None = None) -> str:
    """Natural dedup scope for an event (UTC day, attempt, course, section...)."""
    if now is None:
        now = datetime.now(timezone.utc)

    scope: str | None
    if kind in (EventKind.DAILY_CHECKIN, EventKind.STREAK_MAINTAINED):
        utc_now = now.astimezone(timezone.utc) if now.tzinfo else now
        scope = utc_now.date().isoformat()
    elif kind is EventKind.QUIZ_PASSED:
        scope = ctx.attempt_id or f"{ctx.course_id}:{ctx.attempt_number}"  # type: ignore[attr-defined]
    elif kind is EventKind.SECTION_COMPLETED:
        course_id, section_id = ctx.course_id, ctx.section_id  # type: ignore[attr-defined]
        scope = f"{course_id}:{section_id}" if course_id and section_id else None
    elif kind is EventKind.QUESTION_ASKED:
        scope = ctx.question_id  # type: ignore[attr-defined]
    elif kind is EventKind.TEACH_BACK_BONUS:
        scope = ctx.submission_id  # type: ignore[attr-defined]
    else:
        scope = ctx.course_id  # type: ignore[attr-defined]

    if not scope:
        raise MissingContext(f"Cannot derive an idempotency key for {kind.value}; pass one explicitly")
    return scope


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def mcurio_to_curio(mcurio: int) -> float:
    """Display conversion only. Never persist the result."""
    return mcurio / MCURIO_PER_CURIO


def format_mcurio(mcurio: int, decimals: int = 1) -> str:
    return f"{mcurio_to_curio(mcurio):.{decimals}f} Curio"


def curio_range(difficulty: Difficulty) -> dict[str, int]:
    """Preview of possible quiz awards in mCurio: 4th attempt, 1st attempt, 1st attempt perfect."""
    base = QUIZ_BASE_MCURIO[difficulty]
    return {"min": 0, "max": base, "max_with_bonus": base + base * PERFECT_BONUS_PCT // 100}


def attempt_warning(previous_attempts: int) -> str | None:
    """Message shown before a quiz retry."""
    if previous_attempts <= 0:
        return None
    if previous_attempts == 1:
        return "Second attempt: you will earn 50% of the base Curio"
    if previous_attempts == 2:
        return "Third attempt: you will earn 25% of the base Curio"
    return "No Curio is earned on 4th+ attempts (learning only)"
