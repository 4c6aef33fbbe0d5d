"""Title tiers and resolution.

Thresholds are cumulative balances in mCurio, strictly ascending.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True)
class TitleDefinition:
    tier: int
    slug: str
    name: str
    threshold_mcurio: int
    description: str


TITLES: list[TitleDefinition] = [
    TitleDefinition(1, "curious_newcomer", "Curious Newcomer", 0,
                    "Every expert was once a beginner. Welcome to the journey!"),
    TitleDefinition(2, "question_asker", "Question Asker", 25_000,
                    "You're not afraid to ask. That's the first step to wisdom."),
    TitleDefinition(3, "knowledge_seeker", "Knowledge Seeker", 75_000,
                    "You're building something valuable: your understanding."),
    TitleDefinition(4, "dedicated_learner", "Dedicated Learner", 150_000,
                    "Consistency is your superpower. Keep showing up!"),
    TitleDefinition(5, "curious_explorer", "Curious Explorer", 300_000,
                    "You've wandered into fascinating territory."),
    TitleDefinition(6, "rising_scholar", "Rising Scholar", 500_000,
                    "Your knowledge is growing. People are noticing!"),
    TitleDefinition(7, "insight_hunter", "Insight Hunter", 750_000,
                    "You seek understanding, not just answers."),
    TitleDefinition(8, "wisdom_gatherer", "Wisdom Gatherer", 1_000_000,
                    "You're becoming someone people learn from."),
    TitleDefinition(9, "polymath_training", "Polymath in Training", 1_500_000,
                    "Your curiosity knows no bounds. Impressive!"),
    TitleDefinition(10, "knowledge_architect", "Knowledge Architect", 2_500_000,
                    "You're building a cathedral of understanding."),
]

_THRESHOLDS = [t.threshold_mcurio for t in TITLES]


def resolve_title(balance_mcurio: int) -> TitleDefinition:
    """Greatest threshold <= balance. Negative balances resolve to the first tier."""
    idx = bisect_right(_THRESHOLDS, balance_mcurio) - 1
    return TITLES[max(idx, 0)]


def next_title(balance_mcurio: int) -> TitleDefinition | None:
    """The next tier above the balance, or None at the top tier."""
    idx = bisect_right(_THRESHOLDS, balance_mcurio)
    if idx >= len(TITLES):
        return None
    return TITLES[idx]


def next_title_progress(balance_mcurio: int) -> dict[str, int] | None:
    """Progress within the current tier: {current, required, percentage}, or None at the top."""
    upcoming = next_title(balance_mcurio)
    if upcoming is None:
        return None
    current_title = resolve_title(balance_mcurio)
    current = balance_mcurio - current_title.threshold_mcurio
    required = upcoming.threshold_mcurio - current_title.threshold_mcurio
    return {
        "current": current,
        "required": required,
        "percentage": min(100, round(current / required * 100)),
    }
