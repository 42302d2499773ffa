"""Tests for routing resolution and form navigation."""

import pytest
from formflow.workflow.compiler import compile_form, load_form
from formflow.workflow.context import answer_context
from formflow.workflow.executor import FormGraph, resolve_next
from formflow.workflow.models import Block, Connection, ConditionGroup, ConditionRule, Rule


def rule(rule_id, target, field, operator, value, logical="AND"):
    return Rule(
        id=rule_id,
        target_block_id=target,
        condition_group=ConditionGroup(logical, [ConditionRule(f"{rule_id}-c", field, operator, value)]),
    )


@pytest.fixture
def feedback_yaml():
    return """
form_id: feedback
blocks:
  - { id: q_score, order_index: 0, subtype: number }
  - { id: q_praise, order_index: 1, subtype: long_text }
  - { id: q_complaint, order_index: 2, subtype: long_text }
  - { id: q_email, order_index: 3, subtype: email }
workflow_edges:
  - id: e_score
    source_block_id: q_score
    default_target_id: q_complaint
    order_index: 0
    rules:
      - id: r_high
        target_block_id: q_praise
        condition_group:
          logical_operator: AND
          conditions:
            - { id: c1, field: answer, operator: greater_than, value: 7 }
  - { id: e_praise, source_block_id: q_praise, default_target_id: q_email, order_index: 1 }
  - { id: e_complaint, source_block_id: q_complaint, default_target_id: q_email, order_index: 2 }
"""


def test_first_matching_rule_wins():
    """When two rules match, the earlier one decides."""
    conn = Connection(id="c", source_id="A", default_target_id="D", rules=[
        rule("r1", "B", "answer", "contains", "a"),
        rule("r2", "C", "answer", "contains", "b"),
    ])

    assert resolve_next("A", conn, answer_context("ab"), "short_text") == "B"


def test_default_target_when_no_rule_matches():
    """No match falls back to the default target."""
    conn = Connection(id="c", source_id="A", default_target_id="D", rules=[
        rule("r1", "B", "answer", "equals", "yes"),
    ])

    assert resolve_next("A", conn, answer_context("no"), "short_text") == "D"


def test_no_match_and_no_default_ends_routing():
    """Without a default target an unmatched connection ends the flow."""
    conn = Connection(id="c", source_id="A", default_target_id=None, rules=[
        rule("r1", "B", "answer", "equals", "yes"),
    ])

    assert resolve_next("A", conn, answer_context("no"), "short_text") is None


def test_missing_or_unconditional_connection():
    """No connection ends routing; an unconditional one ignores its rules."""
    always = Connection(id="c", source_id="A", default_target_id="D",
                        rules=[rule("r1", "B", "answer", "equals", "yes")], condition_type="always")

    assert resolve_next("A", None, answer_context("yes"), "short_text") is None
    assert resolve_next("A", always, answer_context("yes"), "short_text") == "D"
    assert resolve_next("A", Connection(id="c", source_id="A", default_target_id="D"),
                        answer_context("x"), "short_text") == "D"


def test_connection_from_another_block_is_ignored():
    """A connection whose source differs from the current block is not followed."""
    conn = Connection(id="c", source_id="Z", default_target_id="D")

    assert resolve_next("A", conn, answer_context("x"), "short_text") is None


def test_resolve_next_is_idempotent():
    """Repeated calls give the same answer and leave the connection untouched."""
    conn = Connection(id="c", source_id="A", default_target_id="D", rules=[
        rule("r1", "B", "answer", "equals", "yes"),
        rule("r2", "C", "answer", "equals", "no"),
    ])
    before = repr(conn)
    answers = answer_context("no")

    first = resolve_next("A", conn, answers, "short_text")
    second = resolve_next("A", conn, answers, "short_text")

    assert first == second == "C"
    assert repr(conn) == before


def test_choice_rule_routes_checkbox_group():
    """Checkbox options drive routing through choice fields."""
    conn = Connection(id="c", source_id="A", default_target_id="D", rules=[
        rule("r1", "B", "choice:Beta_1", "equals", True),
        rule("r2", "C", "choice:Alpha_0", "equals", True),
    ])

    assert resolve_next("A", conn, answer_context(["Alpha"]), "checkbox_group") == "C"


def test_walk_follows_branches(feedback_yaml):
    """A high score goes through the praise question."""
    graph = compile_form(load_form(feedback_yaml))
    answers = {
        "q_score": answer_context(9),
        "q_praise": answer_context("Great!"),
        "q_email": answer_context("me@example.com"),
    }

    result = graph.walk(answers)

    assert result.path == ["q_score", "q_praise", "q_email"]
    assert result.status == "completed"


def test_walk_stops_at_unanswered_block(feedback_yaml):
    """A low score lands on the complaint question, which is still unanswered."""
    graph = compile_form(load_form(feedback_yaml))

    result = graph.walk({"q_score": answer_context(3)})

    assert result.path == ["q_score", "q_complaint"]
    assert result.status == "awaiting_answer"
    assert result.current == "q_complaint"


def test_walk_stops_before_revisiting_a_block():
    """Navigation through a cycle halts instead of looping."""
    blocks = [Block("A", 0), Block("B", 1)]
    conns = [
        Connection(id="ab", source_id="A", default_target_id="B"),
        Connection(id="ba", source_id="B", default_target_id="A", order_index=1),
    ]
    graph = FormGraph(blocks, conns)

    result = graph.walk({"A": answer_context("x"), "B": answer_context("y")})

    assert result.path == ["A", "B"]
    assert result.status == "cycle"


def test_walk_respects_max_steps():
    """The step limit bounds long walks."""
    blocks = [Block(str(i), i) for i in range(5)]
    graph = FormGraph(blocks, [], max_steps=3)

    result = graph.walk({str(i): answer_context("x") for i in range(5)})

    assert result.path == ["0", "1", "2"]
    assert result.status == "max_steps"


def test_sequential_fallback_for_unconnected_blocks():
    """Blocks without outgoing connections continue in order unless disabled."""
    blocks = [Block("B", 1), Block("A", 0)]

    assert FormGraph(blocks, []).next_block_id("A", answer_context("x")) == "B"
    assert FormGraph(blocks, []).next_block_id("B", answer_context("x")) is None
    assert FormGraph(blocks, [], sequential_fallback=False).next_block_id("A", answer_context("x")) is None
    assert FormGraph(blocks, []).next_block_id("ghost", answer_context("x")) is None


def test_lowest_order_connection_is_used():
    """Extra connections from the same block are ignored."""
    blocks = [Block("A", 0), Block("B", 1), Block("C", 2)]
    conns = [
        Connection(id="late", source_id="A", default_target_id="C", order_index=5),
        Connection(id="early", source_id="A", default_target_id="B", order_index=1),
    ]

    assert FormGraph(blocks, conns).next_block_id("A", answer_context("x")) == "B"


def test_walk_from_unknown_block():
    """Starting at a block that is not in the form gives an empty path."""
    graph = FormGraph([Block("A", 0)], [])

    result = graph.walk({"A": answer_context("x")}, start="ghost")

    assert result.path == []
    assert result.status == "unknown_start"
    assert result.current is None
