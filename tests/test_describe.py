"""Tests for plain-language condition summaries."""

from formflow.workflow.describe import field_label, summarize_connection
from formflow.workflow.models import Block, Connection, ConditionGroup, ConditionRule, Rule


def test_field_label_for_standard_and_choice_fields():
    """Standard fields have fixed labels; choice fields use the option label."""
    block = Block(id="b", subtype="checkbox_group", settings={"choices": [{"label": "Red wine", "value": "red"}]})

    assert field_label("weekday") == "Day of Week"
    assert field_label("choice:red_0", block) == '"Red wine"'
    assert field_label("choice:blue_1", block) == "blue"
    assert field_label("") == ""


def test_summarize_connection():
    """Summaries describe default, single-rule and multi-rule connections."""
    single = Rule("r1", "B", ConditionGroup("OR", [
        ConditionRule("c1", "answer", "equals", "yes"),
        ConditionRule("c2", "length", "greater_than", 3),
    ]))
    empty = Rule("r2", "C", ConditionGroup("AND", []))

    assert summarize_connection(None) == "No connection data"
    assert summarize_connection(Connection(id="c", source_id="A")) == "Always proceed to default target"
    assert summarize_connection(Connection(id="c", source_id="A", rules=[single])) == (
        'If Answer equals "yes" OR Length is greater than "3", proceed to rule\'s target'
    )
    assert summarize_connection(Connection(id="c", source_id="A", rules=[single, empty])) == (
        "Proceed based on multiple rules"
    )
    assert summarize_connection(Connection(id="c", source_id="A", rules=[empty])) == (
        "Never matches; proceed to default target"
    )
