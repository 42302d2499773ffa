""" Plain-language descriptions of conditions for the workflow builder. """
from typing import Optional

from .guards import CHOICE_PREFIX, choice_option_value
from .models import Block, ConditionRule, Connection

FIELD_LABELS = {
    "answer": "Answer",
    "selected": "Selected",
    "rating": "Rating",
    "length": "Length",
    "domain": "Domain",
    "weekday": "Day of Week",
    "sentiment": "Sentiment",
}

OPERATOR_LABELS = {
    "equals": "equals",
    "not_equals": "does not equal",
    "contains": "contains",
    "greater_than": "is greater than",
    "less_than": "is less than",
}


def field_label(field: str, block: Optional[Block] = None) -> str:
    if not field:
        return ""
    if field in FIELD_LABELS:
        return FIELD_LABELS[field]
    if field.startswith(CHOICE_PREFIX):
        value = choice_option_value(field)
        choices = []
        if block is not None:
            choices = block.settings.get("choices") or block.settings.get("options") or []
        for choice in choices if isinstance(choices, list) else []:
            if isinstance(choice, dict) and value in (choice.get("value"), choice.get("label")):
                return f'"{choice.get("label") or value}"'
        return value
    return field


def summarize_condition(condition: ConditionRule, block: Optional[Block] = None) -> str:
    operator = OPERATOR_LABELS.get(condition.operator, condition.operator)
    value = condition.value
    if isinstance(value, str) and len(value) > 20:
        shown = f'"{value[:20]}..."'
    elif isinstance(value, bool):
        shown = f'"{str(value).lower()}"'
    else:
        shown = f'"{value}"'
    return f"{field_label(condition.field, block)} {operator} {shown}"


def summarize_connection(connection: Optional[Connection], block: Optional[Block] = None) -> str:
    if connection is None:
        return "No connection data"
    if not connection.rules:
        return "Always proceed to default target"
    if len(connection.rules) > 1:
        return "Proceed based on multiple rules"

    group = connection.rules[0].condition_group
    if not group.conditions:
        if group.is_always():
            return "Always proceed to rule's target"
        return "Never matches; proceed to default target"
    joined = f" {group.logical_operator} ".join(summarize_condition(c, block) for c in group.conditions)
    return f"If {joined}, proceed to rule's target"
