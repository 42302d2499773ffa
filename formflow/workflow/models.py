""" Data models for form workflow representation """

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

AND = "AND"
OR = "OR"

ALWAYS = "always"
CONDITIONAL = "conditional"



@dataclass
class Block:
    id: str
    order_index: int = 0
    subtype: str = "short_text"
    settings: Dict[str, Any] = field(default_factory=dict)
    title: str = ""


@dataclass
class ConditionRule:
    id: str
    field: str
    operator: str = "equals"
    value: Any = None


@dataclass
class ConditionGroup:
    logical_operator: str = AND
    conditions: List[ConditionRule] = field(default_factory=list)
    condition_type: str = CONDITIONAL

    def has_conditions(self) -> bool:
        return len(self.conditions) > 0

    def is_always(self) -> bool:
        return self.condition_type == ALWAYS


@dataclass
class Rule:
    id: str
    target_block_id: str
    condition_group: ConditionGroup = field(default_factory=ConditionGroup)


@dataclass
class Connection:
    id: str
    source_id: str
    default_target_id: Optional[str] = None
    rules: List[Rule] = field(default_factory=list)
    order_index: int = 0
    is_explicit: bool = False
    condition_type: str = CONDITIONAL

    def has_rules(self) -> bool:
        return len(self.rules) > 0

    def is_unconditional(self) -> bool:
        """True when routing ignores the rules and always takes the default."""
        return self.condition_type == ALWAYS or not self.rules

    def targets(self) -> List[str]:
        """Every block id this connection can route to, default first."""
        out = []
        if self.default_target_id:
            out.append(self.default_target_id)
        for rule in self.rules:
            if rule.target_block_id:
                out.append(rule.target_block_id)
        return out

    def endpoint_key(self) -> str:
        return f"{self.source_id}->{self.default_target_id or ''}"


@dataclass
class Form:
    form_id: str = ""
    title: str = ""
    blocks: List[Block] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)

    def block(self, block_id: str) -> Optional[Block]:
        return next((b for b in self.blocks if b.id == block_id), None)
