""" Condition evaluation for workflow rules.

Field/operator compatibility lives in a single table keyed by
(block subtype, field). A pair missing from the table, or an operator the
table does not list for it, evaluates to False.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .context import AnswerContext
from .models import Block, ConditionGroup, ConditionRule, AND, OR

logger = logging.getLogger(__name__)

TEXT = "text"
NUMBER = "number"
DATE = "date"
BOOLEAN = "boolean"
WEEKDAY = "weekday"

CHOICE_PREFIX = "choice:"
CHOICE_SUBTYPES = ("checkbox_group", "dropdown")

_TEXT_OPERATORS = ("equals", "not_equals", "contains")
_ORDERED_OPERATORS = ("equals", "not_equals", "greater_than", "less_than")
_EQUALITY_OPERATORS = ("equals", "not_equals")

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
WEEKEND = "Weekend"
WORKDAY = "Weekday"


@dataclass(frozen=True)
class FieldSpec:
    field: str
    label: str
    kind: str
    operators: Tuple[str, ...]
    extract: Callable[[AnswerContext, str], Any]


@dataclass(frozen=True)
class FieldOption:
    """A field a rule may test for a given block, as offered by the builder."""
    id: str
    label: str
    kind: str
    operators: Tuple[str, ...]


# -------------------------
# OPERAND EXTRACTION
# -------------------------

def _raw_answer(answers: AnswerContext, field: str) -> Any:
    derived = answers.lookup("answer")
    return derived if derived is not None else answers.value


def _any_selected(answers: AnswerContext, field: str) -> Optional[bool]:
    if not answers.has_answer():
        return None
    return len(answers.selection()) > 0


def _choice_selected(answers: AnswerContext, field: str) -> Optional[bool]:
    if not answers.has_answer():
        return None
    return choice_option_value(field) in answers.selection()


def _text_length(answers: AnswerContext, field: str) -> Optional[int]:
    derived = answers.lookup("length")
    if derived is not None:
        return derived
    if isinstance(answers.value, str):
        return len(answers.value)
    return None


def _email_domain(answers: AnswerContext, field: str) -> Optional[str]:
    derived = answers.lookup("domain")
    if derived is not None:
        return derived
    if isinstance(answers.value, str) and "@" in answers.value:
        return answers.value.split("@", 1)[1]
    return None


def _weekday(answers: AnswerContext, field: str) -> Optional[str]:
    derived = answers.lookup("weekday")
    if derived is not None:
        return derived
    day = _to_date(answers.value)
    if day is None:
        return None
    return WEEKDAYS[day.weekday()]


def _rating(answers: AnswerContext, field: str) -> Any:
    derived = answers.lookup("rating")
    return derived if derived is not None else answers.value


def _sentiment(answers: AnswerContext, field: str) -> Optional[str]:
    derived = answers.lookup("sentiment")
    if derived is not None:
        return derived
    if isinstance(answers.value, dict):
        return answers.value.get("sentiment")
    return None


# -------------------------
# FIELD TABLE
# -------------------------

_FIELD_ROWS = (
    # field, label, subtypes, kind, operators, extractor
    ("answer", "Answer", ("short_text", "long_text", "email", "multiple_choice", "dropdown"),
     TEXT, _TEXT_OPERATORS, _raw_answer),
    ("answer", "Answer", ("number",), NUMBER, _ORDERED_OPERATORS, _raw_answer),
    ("answer", "Answer", ("date",), DATE, _ORDERED_OPERATORS, _raw_answer),
    ("selected", "Selected", CHOICE_SUBTYPES, BOOLEAN, _EQUALITY_OPERATORS, _any_selected),
    ("choice", "Option", CHOICE_SUBTYPES, BOOLEAN, _EQUALITY_OPERATORS, _choice_selected),
    ("rating", "Rating", ("rating",), NUMBER, _ORDERED_OPERATORS, _rating),
    ("length", "Length", ("short_text", "long_text"), NUMBER, _ORDERED_OPERATORS, _text_length),
    ("domain", "Domain", ("email",), TEXT, _TEXT_OPERATORS, _email_domain),
    ("weekday", "Day of Week", ("date",), WEEKDAY, _EQUALITY_OPERATORS, _weekday),
    ("sentiment", "Sentiment", ("ai_conversation",), TEXT, _EQUALITY_OPERATORS, _sentiment),
)


def _build_table() -> Dict[Tuple[str, str], FieldSpec]:
    table: Dict[Tuple[str, str], FieldSpec] = {}
    for name, label, subtypes, kind, operators, extract in _FIELD_ROWS:
        for subtype in subtypes:
            table[(subtype, name)] = FieldSpec(name, label, kind, operators, extract)
    return table


FIELD_TABLE = _build_table()


def choice_option_value(field: str) -> str:
    """
    Strip the `choice:` prefix and the `_<index>` suffix from a choice field.
    The index only disambiguates options that share a value.
    """
    raw = field[len(CHOICE_PREFIX):] if field.startswith(CHOICE_PREFIX) else field
    head, sep, tail = raw.rpartition("_")
    if sep and tail.isdigit():
        return head
    return raw


def lookup_field(subtype: str, field: str) -> Optional[FieldSpec]:
    if not isinstance(field, str) or not field:
        return None
    key = "choice" if field.startswith(CHOICE_PREFIX) else field
    return FIELD_TABLE.get((subtype, key))


def operators_for_field(field: str, subtype: str) -> Tuple[str, ...]:
    spec = lookup_field(subtype, field)
    return spec.operators if spec else ()


# -------------------------
# COMPARISON
# -------------------------

def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        # no digit separators such as "1_000"
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _compare_text(operator: str, actual: Any, expected: Any) -> bool:
    left, right = _to_text(actual), _to_text(expected)
    if operator == "equals":
        return left == right
    if operator == "not_equals":
        return left != right
    if operator == "contains":
        return right in left
    return False


def _compare_number(operator: str, actual: Any, expected: Any) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    if left is None or right is None:
        return False
    if operator == "equals":
        return left == right
    if operator == "not_equals":
        return left != right
    if operator == "greater_than":
        return left > right
    if operator == "less_than":
        return left < right
    return False


def _compare_date(operator: str, actual: Any, expected: Any) -> bool:
    if operator in ("equals", "not_equals"):
        return _compare_text(operator, actual, expected)
    left, right = _to_date(actual), _to_date(expected)
    if left is None or right is None:
        return False
    if operator == "greater_than":
        return left > right
    if operator == "less_than":
        return left < right
    return False


def _compare_boolean(operator: str, actual: Any, expected: Any) -> bool:
    wanted = _to_bool(expected)
    if wanted is None:
        return False
    if operator == "equals":
        return bool(actual) == wanted
    if operator == "not_equals":
        return bool(actual) != wanted
    return False


def _weekday_matches(day: str, expected: str) -> bool:
    if expected == WEEKEND:
        return day in WEEKDAYS[5:]
    if expected == WORKDAY:
        return day in WEEKDAYS[:5]
    return day == expected


def _compare_weekday(operator: str, actual: Any, expected: Any) -> bool:
    if not isinstance(expected, str):
        return False
    matches = _weekday_matches(str(actual), expected)
    if operator == "equals":
        return matches
    if operator == "not_equals":
        return not matches
    return False


_COMPARATORS: Dict[str, Callable[[str, Any, Any], bool]] = {
    TEXT: _compare_text,
    NUMBER: _compare_number,
    DATE: _compare_date,
    BOOLEAN: _compare_boolean,
    WEEKDAY: _compare_weekday,
}


# -------------------------
# EVALUATION
# -------------------------

def evaluate_condition(rule: ConditionRule, subtype: str, answers: Optional[AnswerContext]) -> bool:
    """
    Evaluate a single condition against the answer recorded for the source block.

    Never raises: unsupported field/operator pairs, missing answers and
    operands of the wrong type all evaluate to False.
    """
    spec = lookup_field(subtype, rule.field)
    if spec is None or rule.operator not in spec.operators:
        logger.warning(
            "Unsupported condition %s: field=%r operator=%r subtype=%r",
            rule.id, rule.field, rule.operator, subtype,
        )
        return False
    if answers is None:
        return False

    actual = spec.extract(answers, rule.field)
    if actual is None:
        return False

    try:
        result = _COMPARATORS[spec.kind](rule.operator, actual, rule.value)
    except (TypeError, ValueError) as exc:
        logger.warning("Condition %s could not be evaluated: %s", rule.id, exc)
        return False
    logger.debug("Condition %s (%s %s %r) -> %s", rule.id, rule.field, rule.operator, rule.value, result)
    return result


def evaluate_group(group: ConditionGroup, subtype: str, answers: Optional[AnswerContext]) -> bool:
    """
    AND: every condition holds. OR: at least one holds.
    An empty group matches only when flagged "always".
    """
    if not group.has_conditions():
        return group.is_always()

    operator = group.logical_operator or AND
    if not isinstance(operator, str):
        logger.warning("Unknown logical operator %r, group does not match", operator)
        return False
    operator = operator.upper()
    results = (evaluate_condition(c, subtype, answers) for c in group.conditions)
    if operator == AND:
        return all(results)
    if operator == OR:
        return any(results)
    logger.warning("Unknown logical operator %r, group does not match", group.logical_operator)
    return False


# -------------------------
# FIELD CATALOGUE
# -------------------------

def available_fields(block: Optional[Block]) -> List[FieldOption]:
    """Fields offered for rules on `block`: standard fields, then one field per choice option."""
    if block is None:
        return []

    fields = [
        FieldOption(spec.field, spec.label, spec.kind, spec.operators)
        for (subtype, name), spec in FIELD_TABLE.items()
        if subtype == block.subtype and name != "choice"
    ]

    if block.subtype in CHOICE_SUBTYPES:
        choices = block.settings.get("choices") or block.settings.get("options") or []
        if isinstance(choices, list):
            for index, choice in enumerate(choices):
                if not isinstance(choice, dict):
                    continue
                value = choice.get("value") or choice.get("label") or f"option_{index}"
                label = choice.get("label") or value
                fields.append(FieldOption(
                    id=f"{CHOICE_PREFIX}{value}_{index}",
                    label=f'Option "{label}"',
                    kind=BOOLEAN,
                    operators=_EQUALITY_OPERATORS,
                ))
    return fields


def _value_has_kind(value: Any, kind: str) -> bool:
    if kind == BOOLEAN:
        return isinstance(value, bool)
    if kind == NUMBER:
        return _to_number(value) is not None
    if kind == DATE:
        return isinstance(value, str) and _to_date(value) is not None
    return isinstance(value, str)


def validate_condition(rule: Optional[ConditionRule], block: Optional[Block]) -> bool:
    """Check a condition against what the builder would allow for `block`."""
    if rule is None or block is None or not isinstance(rule.field, str) or not rule.field or not rule.operator:
        return False

    options = available_fields(block)
    if rule.field.startswith(CHOICE_PREFIX):
        wanted = choice_option_value(rule.field)
        option = next(
            (o for o in options if o.id.startswith(CHOICE_PREFIX) and choice_option_value(o.id) == wanted),
            None,
        )
    else:
        option = next((o for o in options if o.id == rule.field), None)

    if option is None or rule.operator not in option.operators:
        return False
    if rule.value is None:
        return False
    return _value_has_kind(rule.value, option.kind)
