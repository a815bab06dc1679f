"""Checklist progress tables and the free-text classifier built on them.

Staff type checklist statuses into spreadsheet cells by hand, so the values
rarely match the canonical step labels exactly. ``match`` maps such a value
onto a phase's step table in four passes:

1. containment against the step labels, in table order;
2. the phase's keyword rules, in rule order;
3. a generic "complete" fallback that ignores anything mentioning
   "inspection";
4. zero.

The containment pass returns the *first* label in table order, not the
longest or most specific one. Existing dashboards depend on that ordering,
so it is kept even though it looks accidental.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class Phase(str, Enum):
    PLANNING = "planning"
    PERMITTING = "permitting"
    INSPECTION = "inspection"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True, slots=True)
class ProgressStep:
    label: str
    percentage: float


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Fallback rule applied when no step label matched.

    The rule fires when every ``all_of`` keyword is present, at least one
    ``any_of`` keyword is present (if any are given) and no ``none_of``
    keyword is present.
    """

    percentage: float
    all_of: Tuple[str, ...] = ()
    any_of: Tuple[str, ...] = ()
    none_of: Tuple[str, ...] = ()

    def matches(self, normalized: str) -> bool:
        if not all(keyword in normalized for keyword in self.all_of):
            return False
        if self.any_of and not any(keyword in normalized for keyword in self.any_of):
            return False
        return not any(keyword in normalized for keyword in self.none_of)


@dataclass(frozen=True, slots=True)
class PhaseRules:
    steps: Tuple[ProgressStep, ...]
    keyword_rules: Tuple[KeywordRule, ...] = ()
    # Distinct percentages in ascending order; position + 1 is the step ordinal.
    levels: Tuple[float, ...] = field(init=False)

    def __post_init__(self) -> None:
        levels = tuple(sorted({step.percentage for step in self.steps}))
        object.__setattr__(self, "levels", levels)

    @property
    def max_percentage(self) -> float:
        return self.levels[-1] if self.levels else 0.0

    def step_for(self, percentage: float) -> Optional[ProgressStep]:
        for step in self.steps:
            if step.percentage == percentage:
                return step
        return None


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    percentage: float
    matched_step: Optional[ProgressStep]


@dataclass(frozen=True, slots=True)
class ProgressStatus:
    label: str
    color: str


GENERIC_COMPLETION_RULE = KeywordRule(100, all_of=("complete",), none_of=("inspection",))


PLANNING_RULES = PhaseRules(
    steps=(
        ProgressStep("review documents for completeness", 12.5),
        ProgressStep("send update email to client", 25),
        ProgressStep("code compliance review", 37.5),
        ProgressStep("stamp documents", 50),
        ProgressStep("notification to permit tech", 62.5),
        ProgressStep("send documents to client or permit tech", 75),
        ProgressStep("invoice project", 87.5),
        ProgressStep("completed", 100),
    ),
    keyword_rules=(
        KeywordRule(12.5, all_of=("review", "document")),
        KeywordRule(25, all_of=("email", "client")),
        KeywordRule(37.5, all_of=("code", "compli")),
        KeywordRule(50, all_of=("stamp",)),
        KeywordRule(62.5, all_of=("notification", "permit")),
        KeywordRule(75, all_of=("send", "document")),
        KeywordRule(87.5, all_of=("invoice",)),
    ),
)

PERMITTING_RULES = PhaseRules(
    steps=(
        ProgressStep("collect permitting document", 10),
        ProgressStep("email notifications to permit tech", 20),
        ProgressStep("jurisdiction documents", 30),
        ProgressStep("submit to jurisdiction", 40),
        ProgressStep("email notifications to client", 50),
        ProgressStep("weekly follow-up notification", 60),
        ProgressStep("client contact for jurisdiction fee", 70),
        ProgressStep("notification to plans examiner", 80),
        ProgressStep("notification to inspector", 90),
        ProgressStep("completed", 100),
    ),
    keyword_rules=(
        KeywordRule(10, all_of=("collect", "perm")),
        KeywordRule(20, all_of=("email", "permit tech")),
        KeywordRule(30, all_of=("jurisdiction", "doc")),
        KeywordRule(40, all_of=("submit", "jurisdiction")),
        KeywordRule(50, all_of=("email", "client")),
        KeywordRule(60, any_of=("weekly", "follow-up")),
        KeywordRule(70, any_of=("fee", "payment")),
        KeywordRule(80, all_of=("plans examiner",)),
        KeywordRule(90, all_of=("inspector",), none_of=("plans",)),
    ),
)

INSPECTION_RULES = PhaseRules(
    steps=(
        ProgressStep("inspector", 20),
        ProgressStep("complete inspection", 40),
        ProgressStep("client notification for inspection", 60),
        ProgressStep("notification to permit tech", 80),
        ProgressStep("all completed", 100),
        ProgressStep("move to closeout", 100),
    ),
    keyword_rules=(
        KeywordRule(20, all_of=("inspector",), none_of=("notification",)),
        KeywordRule(40, all_of=("complete", "inspection")),
        KeywordRule(60, all_of=("client", "notification")),
        KeywordRule(80, all_of=("permit tech", "notification")),
        KeywordRule(100, any_of=("closeout", "all completed")),
    ),
)

PHASE_RULES: Mapping[Phase, PhaseRules] = MappingProxyType(
    {
        Phase.PLANNING: PLANNING_RULES,
        Phase.PERMITTING: PERMITTING_RULES,
        Phase.INSPECTION: INSPECTION_RULES,
    }
)

_NO_MATCH = ClassificationResult(0.0, None)


def normalize(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def match(
    value: object,
    phase: Phase,
    rules: Mapping[Phase, PhaseRules] = PHASE_RULES,
) -> ClassificationResult:
    """Classify a raw checklist value for ``phase``; never raises."""

    normalized = normalize(value)
    if not normalized:
        return _NO_MATCH

    phase_rules = rules[phase]

    # First label in table order wins, even when a later label is a better fit.
    for step in phase_rules.steps:
        if step.label in normalized or normalized in step.label:
            return ClassificationResult(float(step.percentage), step)

    for rule in phase_rules.keyword_rules:
        if rule.matches(normalized):
            return _result_for(phase_rules, rule.percentage)

    if GENERIC_COMPLETION_RULE.matches(normalized):
        return _result_for(phase_rules, phase_rules.max_percentage)

    return _NO_MATCH


def _result_for(phase_rules: PhaseRules, percentage: float) -> ClassificationResult:
    return ClassificationResult(float(percentage), phase_rules.step_for(percentage))


def classify(
    value: object,
    phase: Phase,
    rules: Mapping[Phase, PhaseRules] = PHASE_RULES,
) -> float:
    """Return the 0-100 completion percentage for a checklist value."""

    return match(value, phase, rules).percentage


def step_index(
    value: object,
    phase: Phase,
    rules: Mapping[Phase, PhaseRules] = PHASE_RULES,
) -> int:
    """Return the 1-based step ordinal for a checklist value, or 0 if unmatched."""

    result = match(value, phase, rules)
    if result.matched_step is None:
        return 0
    return rules[phase].levels.index(result.matched_step.percentage) + 1


def step_count(phase: Phase, rules: Mapping[Phase, PhaseRules] = PHASE_RULES) -> int:
    return len(rules[phase].levels)


def progress_status(percentage: float) -> ProgressStatus:
    if percentage >= 100:
        return ProgressStatus("Completed", "green")
    if percentage >= 50:
        return ProgressStatus("In Progress", "blue")
    if percentage > 0:
        return ProgressStatus("Started", "yellow")
    return ProgressStatus("Not Started", "gray")


def bar_color(percentage: float) -> str:
    """Shade used for a progress bar of the given fill."""

    if percentage >= 100:
        return "green"
    if percentage >= 75:
        return "blue"
    if percentage >= 50:
        return "yellow"
    if percentage >= 25:
        return "orange"
    if percentage > 0:
        return "light-orange"
    return "slate"


def round_half_up(value: float) -> int:
    """Round the way dashboards display averages (0.5 always rounds up)."""

    return math.floor(value + 0.5)
