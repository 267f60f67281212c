"""Validation rules — one class per rule name, Strategy Pattern.

Each rule is a standalone, independently testable unit that declares which
form fields it reads. New rules are registered without touching the evaluator.

Contract:
    - check() is deterministic: same snapshot → same outcome
    - check() never mutates the snapshot
    - absent or malformed data is a failed rule, not an exception
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from dohcompliance.standards.reference_data import REQUIRED_CLINICAL_FIELDS


def _is_blank(value: Any) -> bool:
    """A field counts as missing when it is None, False, zero, NaN or blank text."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # NaN is the only value unequal to itself
        return value == 0 or value != value
    return False


class FormSnapshot:
    """Read-only view over submitted form data with typed accessors.

    Anything that is not a mapping (None, a list, a string...) is treated as
    an empty form rather than an error.
    """

    def __init__(self, data: Optional[Mapping[str, Any]]):
        self._data: Mapping[str, Any] = data if isinstance(data, Mapping) else {}

    @property
    def is_empty(self) -> bool:
        return len(self._data) == 0

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def has(self, name: str) -> bool:
        return not _is_blank(self._data.get(name))

    def missing(self, names: Iterable[str]) -> list[str]:
        """Names from `names` that are blank, in the order given."""
        return [n for n in names if not self.has(n)]

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class RuleOutcome:
    """What one rule concluded about the snapshot."""

    passed: bool
    evidence: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


class BaseRule(ABC):
    """Abstract base for all requirement validation rules."""

    # Form fields this rule reads; empty means it looks at the form as a whole
    fields: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Rule name as referenced by `Requirement.validation_rules`."""
        ...

    @abstractmethod
    def check(self, form: FormSnapshot) -> RuleOutcome:
        """Evaluate the rule against a form snapshot."""
        ...

    # ── Helper Methods ──

    def _pass(self, evidence: str) -> RuleOutcome:
        return RuleOutcome(passed=True, evidence=[evidence])

    def _fail(self, recommendation: str) -> RuleOutcome:
        return RuleOutcome(passed=False, recommendations=[recommendation])


class RequiredFieldRule(BaseRule):
    """The form must contain at least some data."""

    @property
    def name(self) -> str:
        return "required_field"

    def check(self, form: FormSnapshot) -> RuleOutcome:
        if form.is_empty:
            return self._fail("Complete the required form fields")
        return self._pass("Form data provided")


class TimestampValidationRule(BaseRule):
    """Both the record timestamp and the completion time must be present."""

    fields = ("timestamp", "completedAt")

    @property
    def name(self) -> str:
        return "timestamp_validation"

    def check(self, form: FormSnapshot) -> RuleOutcome:
        if form.missing(self.fields):
            return self._fail("Ensure proper timestamp documentation")
        return self._pass("Timestamp recorded")


class CompletenessCheckRule(BaseRule):
    """Patient id, assessment date and clinical findings must all be filled in."""

    fields = REQUIRED_CLINICAL_FIELDS

    @property
    def name(self) -> str:
        return "completeness_check"

    def check(self, form: FormSnapshot) -> RuleOutcome:
        missing = form.missing(self.fields)
        if missing:
            return self._fail(f"Complete missing fields: {', '.join(missing)}")
        return self._pass("All required fields completed")


class UnknownRule(BaseRule):
    """Stand-in for a rule name the engine has no implementation for.

    With the permissive policy it passes and records that it was seen; with
    the strict policy it fails so the requirement cannot be satisfied by an
    unimplemented check.
    """

    def __init__(self, rule_name: str, fail_closed: bool = False):
        self._rule_name = rule_name
        self.fail_closed = fail_closed

    @property
    def name(self) -> str:
        return self._rule_name

    def check(self, form: FormSnapshot) -> RuleOutcome:
        if self.fail_closed:
            return self._fail(f"Rule {self._rule_name} could not be verified automatically")
        return self._pass(f"Rule {self._rule_name} evaluated")


class RuleRegistry:
    """Maps rule names to rule instances."""

    def __init__(self, rules: Optional[list[BaseRule]] = None, unknown_rule_policy: str = "pass"):
        if unknown_rule_policy not in ("pass", "fail"):
            raise ValueError(f"Unknown rule policy must be 'pass' or 'fail', got '{unknown_rule_policy}'")
        self.unknown_rule_policy = unknown_rule_policy
        self._rules: dict[str, BaseRule] = {}
        for rule in rules if rules is not None else self._default_rules():
            self.register(rule)

    @staticmethod
    def _default_rules() -> list[BaseRule]:
        return [
            RequiredFieldRule(),
            TimestampValidationRule(),
            CompletenessCheckRule(),
        ]

    def register(self, rule: BaseRule) -> None:
        self._rules[rule.name] = rule

    def is_known(self, name: str) -> bool:
        return name in self._rules

    def get(self, name: str) -> BaseRule:
        """Return the rule for `name`, or an UnknownRule honouring the policy."""
        rule = self._rules.get(name)
        if rule is None:
            return UnknownRule(name, fail_closed=self.unknown_rule_policy == "fail")
        return rule

    @property
    def names(self) -> list[str]:
        return list(self._rules.keys())
