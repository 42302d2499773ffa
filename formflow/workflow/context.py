""" Respondent answer data handed to the condition evaluator. """
from dataclasses import dataclass, field
from typing import Dict, Any, FrozenSet, Iterable, Optional


@dataclass(frozen=True)
class AnswerContext:
    """
    What a respondent recorded for one block.

    `value` is the raw answer. `selected` is the set of option identifiers
    for choice blocks; when it is not given it is derived from a list answer.
    `derived` holds fields computed upstream (domain, weekday, sentiment,
    rating) which take precedence over deriving them from `value`.
    """
    value: Any = None
    selected: Optional[FrozenSet[str]] = None
    derived: Dict[str, Any] = field(default_factory=dict)

    def has_answer(self) -> bool:
        return self.value is not None or self.selected is not None

    def selection(self) -> FrozenSet[str]:
        if self.selected is not None:
            return self.selected
        return _selection_from_value(self.value)

    def lookup(self, name: str) -> Any:
        return self.derived.get(name)


def answer_context(value: Any = None, selected: Optional[Iterable[Any]] = None, **derived: Any) -> AnswerContext:
    """Build an AnswerContext, normalising the selection to a frozenset of strings."""
    chosen = None
    if selected is not None:
        chosen = frozenset(str(item) for item in selected)
    return AnswerContext(value=value, selected=chosen, derived=dict(derived))


def _selection_from_value(value: Any) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(item) for item in value if item is not None)
    if isinstance(value, str):
        return frozenset([value]) if value else frozenset()
    return frozenset([str(value)])
