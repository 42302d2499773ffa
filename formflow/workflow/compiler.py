""" Load a form graph from YAML and bring it into a routable state. """

import logging
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..settings import FormflowSettings, load_settings
from .executor import FormGraph
from .models import Block, Connection, Form
from .schema import block_from_record, connection_from_record
from .validation import create_default_connections, preserve_rules, validate_connections

logger = logging.getLogger(__name__)


def load_form(yaml_text: str, *, auto_connect: bool = True) -> Form:
    """
    Load a Form from a YAML string.
    """
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise ValueError(f"Form YAML could not be parsed: {e}")
    return build_form(data, auto_connect=auto_connect)


def build_form(data: Any, *, auto_connect: bool = True) -> Form:
    """
    Build a Form from decoded records. Block records must be valid; edge
    records that are not are skipped.
    """
    if not isinstance(data, dict):
        raise ValueError("Form definition must be a mapping")
    if "blocks" not in data:
        raise ValueError("Missing required top-level field: blocks")

    block_records = data.get("blocks") or []
    if not isinstance(block_records, list):
        raise ValueError("Form field 'blocks' must be a list")
    blocks = [block_from_record(raw) for raw in block_records]
    _check_blocks(blocks)

    edge_records = data.get("workflow_edges")
    if edge_records is None:
        edge_records = data.get("connections") or []
    if not isinstance(edge_records, list):
        logger.warning("Ignoring workflow edges that are not a list: %r", type(edge_records).__name__)
        edge_records = []
    connections = transform_connections(edge_records)
    connections = repair_connections(connections, blocks, auto_connect=auto_connect)

    return Form(
        form_id=str(data.get("form_id", "")),
        title=data.get("title") or "Untitled Form",
        blocks=blocks,
        connections=connections,
    )


def transform_connections(records: Iterable[Dict[str, Any]]) -> List[Connection]:
    connections = []
    for raw in records:
        conn = connection_from_record(raw)
        if conn is not None:
            connections.append(conn)
    return sorted(connections, key=lambda c: c.order_index)


def repair_connections(connections: List[Connection], blocks: List[Block], *,
                       auto_connect: bool = True) -> List[Connection]:
    """Prune dangling references, restore rules and, for an unwired form, link blocks in order."""
    connections = validate_connections(connections, blocks)
    connections = preserve_rules(connections)

    if auto_connect and not connections and len(blocks) > 1:
        connections = create_default_connections(blocks, connections)
        connections = validate_connections(connections, blocks)
    return connections


def compile_form(form: Form, *, sequential_fallback: bool = True,
                 max_steps: Optional[int] = None) -> FormGraph:
    kwargs = {} if max_steps is None else {"max_steps": max_steps}
    return FormGraph(form.blocks, form.connections, sequential_fallback=sequential_fallback, **kwargs)


def load_form_graph(yaml_text: str, settings: Optional[FormflowSettings] = None) -> FormGraph:
    """Load a form from YAML and index it for navigation using `settings` (or the environment)."""
    settings = settings or load_settings()
    form = load_form(yaml_text, auto_connect=settings.auto_connect)
    return compile_form(
        form,
        sequential_fallback=settings.sequential_fallback,
        max_steps=settings.max_walk_steps,
    )


def _check_blocks(blocks: List[Block]) -> None:
    seen = set()
    orders = set()
    for block in blocks:
        if block.id in seen:
            raise ValueError(f"Duplicate block id: {block.id}")
        seen.add(block.id)
        if block.order_index in orders:
            logger.warning("Block %s shares order_index %d with another block", block.id, block.order_index)
        orders.add(block.order_index)
