""" Persisted record shapes for blocks and workflow edges. """
import json
import logging
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Block, Connection, Rule, ConditionGroup, ConditionRule, AND, CONDITIONAL

logger = logging.getLogger(__name__)


class ConditionSpec(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = ""
    field: str = ""
    operator: str = "equals"
    value: Any = None


class ConditionGroupSpec(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    logical_operator: str = AND
    conditions: List[ConditionSpec] = Field(default_factory=list)
    condition_type: str = CONDITIONAL

    @field_validator("logical_operator", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if value is None:
            return AND
        return value.upper() if isinstance(value, str) else value


class RuleSpec(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    target_block_id: str
    condition_group: ConditionGroupSpec


class BlockRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    order_index: int = Field(default=0, alias="orderIndex")
    subtype: str = Field(default="short_text", alias="block_subtype")
    settings: Dict[str, Any] = Field(default_factory=dict)
    title: str = ""

    @field_validator("order_index", mode="before")
    @classmethod
    def _order_or_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("settings", mode="before")
    @classmethod
    def _settings_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return value or ""


class EdgeRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    source_id: Optional[str] = Field(default=None, alias="source_block_id")
    default_target_id: Optional[str] = None
    rules: Any = None
    order_index: int = 0
    is_explicit: bool = False
    condition_type: str = CONDITIONAL

    @field_validator("order_index", mode="before")
    @classmethod
    def _order_or_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("is_explicit", mode="before")
    @classmethod
    def _explicit_or_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("default_target_id", mode="before")
    @classmethod
    def _blank_target_is_none(cls, value: Any) -> Any:
        return value or None


# UI-side names accepted alongside the column names
_EDGE_KEY_ALIASES = {
    "sourceId": "source_block_id",
    "defaultTargetId": "default_target_id",
    "orderIndex": "order_index",
    "isExplicit": "is_explicit",
    "conditionType": "condition_type",
}


def _normalise_edge_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(raw)
    for ui_key, column in _EDGE_KEY_ALIASES.items():
        if ui_key in data and column not in data:
            data[column] = data.pop(ui_key)
    return data


def _to_rule(spec: RuleSpec) -> Rule:
    group = spec.condition_group
    return Rule(
        id=spec.id,
        target_block_id=spec.target_block_id,
        condition_group=ConditionGroup(
            logical_operator=group.logical_operator,
            conditions=[
                ConditionRule(id=c.id or "", field=c.field, operator=c.operator, value=c.value)
                for c in group.conditions
            ],
            condition_type=group.condition_type,
        ),
    )


def parse_rules(raw: Any, edge_id: str = "?") -> List[Rule]:
    """
    Parse persisted rules, given either as a JSON string or an already decoded list.
    Anything unreadable yields an empty list; malformed entries are skipped.
    """
    if raw is None or raw == "":
        return []

    decoded = raw
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            logger.warning("Failed to parse rules JSON for edge %s: %s", edge_id, exc)
            return []

    if not isinstance(decoded, list):
        logger.warning("Rules for edge %s are not a list: %r", edge_id, type(decoded).__name__)
        return []

    rules: List[Rule] = []
    for item in decoded:
        try:
            rules.append(_to_rule(RuleSpec.model_validate(item)))
        except ValidationError as e:
            logger.warning("Skipping malformed rule on edge %s: %s", edge_id, e)
    return rules


def block_from_record(raw: Dict[str, Any]) -> Block:
    """Validate a block record. Raises ValueError when it does not fit."""
    try:
        record = BlockRecord.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Form validation error: {e}")
    return Block(
        id=record.id,
        order_index=record.order_index,
        subtype=record.subtype,
        settings=record.settings,
        title=record.title,
    )


def connection_from_record(raw: Any) -> Optional[Connection]:
    """Turn an edge record into a Connection, or None (with a warning) when unusable."""
    if not isinstance(raw, dict):
        logger.warning("Skipping edge record that is not a mapping: %r", raw)
        return None
    try:
        record = EdgeRecord.model_validate(_normalise_edge_keys(raw))
    except ValidationError as e:
        logger.warning("Skipping invalid edge record %s: %s", raw.get("id"), e)
        return None
    if not record.id or not record.source_id:
        logger.warning("Skipping edge record without id or source: %r", raw)
        return None

    return Connection(
        id=record.id,
        source_id=record.source_id,
        default_target_id=record.default_target_id,
        rules=parse_rules(record.rules, record.id),
        order_index=record.order_index,
        is_explicit=record.is_explicit,
        condition_type=record.condition_type,
    )


def connection_to_record(connection: Connection) -> Dict[str, Any]:
    """Column-named record with rules encoded as JSON, ready to be written back."""
    rules = [
        RuleSpec(
            id=rule.id,
            target_block_id=rule.target_block_id,
            condition_group=ConditionGroupSpec(
                logical_operator=rule.condition_group.logical_operator,
                conditions=[
                    ConditionSpec(id=c.id, field=c.field, operator=c.operator, value=c.value)
                    for c in rule.condition_group.conditions
                ],
                condition_type=rule.condition_group.condition_type,
            ),
        ).model_dump()
        for rule in connection.rules
    ]
    return {
        "id": connection.id,
        "source_block_id": connection.source_id,
        "default_target_id": connection.default_target_id,
        "rules": json.dumps(rules),
        "order_index": connection.order_index,
        "is_explicit": connection.is_explicit,
        "condition_type": connection.condition_type,
    }
