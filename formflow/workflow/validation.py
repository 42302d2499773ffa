""" Referential integrity, rule preservation and cycle detection for form graphs. """

import copy
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set

from .models import Block, Connection, Rule

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    cyclic_blocks: Dict[str, bool] = field(default_factory=dict)
    cycle_connections: Set[str] = field(default_factory=set)

    @property
    def has_cycles(self) -> bool:
        return any(self.cyclic_blocks.values())

    def cyclic_ids(self) -> Set[str]:
        return {block_id for block_id, flagged in self.cyclic_blocks.items() if flagged}


def _block_ids(blocks: Iterable[Block]) -> Set[str]:
    return {block.id for block in blocks}


def validate_connections(connections: List[Connection], blocks: List[Block]) -> List[Connection]:
    """
    Drop connections whose source or default target is not a known block,
    and rules whose target is not a known block. Input objects are not mutated.
    """
    known = _block_ids(blocks)
    valid: List[Connection] = []

    for conn in connections:
        if conn.source_id not in known:
            logger.warning("Pruning connection %s: unknown source block %r", conn.id, conn.source_id)
            continue
        if conn.default_target_id is not None and conn.default_target_id not in known:
            logger.warning(
                "Pruning connection %s: unknown default target %r", conn.id, conn.default_target_id
            )
            continue

        rules = [rule for rule in conn.rules if rule.target_block_id in known]
        if len(rules) != len(conn.rules):
            dropped = [rule.id for rule in conn.rules if rule.target_block_id not in known]
            logger.warning("Pruning rules %s from connection %s: unknown target block", dropped, conn.id)
            conn = replace(conn, rules=rules)
        valid.append(conn)

    return valid


def preserve_rules(connections: List[Connection]) -> List[Connection]:
    """
    Re-attach rules to connections that lost them when their ids were
    regenerated. Connections are matched on `source->default target`; the
    first rule-bearing connection for a key supplies the rules.
    """
    known_rules: Dict[str, List[Rule]] = {}
    for conn in connections:
        if conn.has_rules():
            known_rules.setdefault(conn.endpoint_key(), conn.rules)

    preserved: List[Connection] = []
    for conn in connections:
        rules = known_rules.get(conn.endpoint_key())
        if not conn.has_rules() and rules:
            logger.debug("Restoring %d rule(s) onto connection %s", len(rules), conn.id)
            conn = replace(conn, rules=copy.deepcopy(rules))
        preserved.append(conn)
    return preserved


def _adjacency(blocks: List[Block], connections: List[Connection]) -> Dict[str, List[str]]:
    adjacency: Dict[str, List[str]] = {block.id: [] for block in blocks}
    for conn in connections:
        if conn.source_id not in adjacency:
            continue
        for target in conn.targets():
            if target in adjacency:
                adjacency[conn.source_id].append(target)
    return adjacency


def _strongly_connected(adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """Tarjan's algorithm, iterative so long chains do not hit the recursion limit."""
    index: Dict[str, int] = {}
    low: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    components: List[List[str]] = []
    counter = 0

    for root in adjacency:
        if root in index:
            continue
        work = [(root, 0)]
        while work:
            node, pos = work.pop()
            if pos == 0:
                index[node] = low[node] = counter
                counter += 1
                stack.append(node)
                on_stack.add(node)

            targets = adjacency[node]
            while pos < len(targets):
                target = targets[pos]
                pos += 1
                if target not in index:
                    work.append((node, pos))
                    work.append((target, 0))
                    break
                if target in on_stack:
                    low[node] = min(low[node], index[target])
            else:
                if low[node] == index[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
    return components


def detect_cycles(blocks: List[Block], connections: List[Connection]) -> CycleReport:
    """
    Flag every block that lies on a cycle of default/rule targets, and every
    connection contributing an edge inside such a cycle. Self-loops count.
    """
    adjacency = _adjacency(blocks, connections)
    component_of: Dict[str, int] = {}
    cyclic: Set[str] = set()

    for number, component in enumerate(_strongly_connected(adjacency)):
        for member in component:
            component_of[member] = number
        if len(component) > 1:
            cyclic.update(component)
        elif component[0] in adjacency[component[0]]:
            cyclic.add(component[0])

    report = CycleReport(cyclic_blocks={block_id: block_id in cyclic for block_id in adjacency})
    for conn in connections:
        if conn.source_id not in cyclic:
            continue
        for target in conn.targets():
            if target in cyclic and component_of.get(target) == component_of[conn.source_id]:
                report.cycle_connections.add(conn.id)
                break

    if report.has_cycles:
        logger.warning(
            "Cycle detected through blocks %s (%d connection(s))",
            sorted(cyclic), len(report.cycle_connections),
        )
    return report


def _default_connection(source_id: str, target_id: str, order_index: int) -> Connection:
    return Connection(
        id=str(uuid.uuid4()),
        source_id=source_id,
        default_target_id=target_id,
        order_index=order_index,
        is_explicit=False,
    )


def create_default_connections(
    blocks: List[Block],
    connections: List[Connection],
    target_block_id: Optional[str] = None,
) -> List[Connection]:
    """
    Link blocks in order_index sequence without overriding author-drawn or
    rule-bearing connections. With `target_block_id`, only wire that block
    to its neighbours.
    """
    ordered = sorted(blocks, key=lambda block: block.order_index)
    current = _block_ids(ordered)

    def _generated_between_current(conn: Connection) -> bool:
        return (
            not conn.is_explicit
            and not conn.has_rules()
            and conn.source_id in current
            and conn.default_target_id in current
        )

    if len(ordered) <= 1:
        return [conn for conn in connections if not _generated_between_current(conn)]

    updated = list(connections)

    if target_block_id is not None:
        position = next((i for i, block in enumerate(ordered) if block.id == target_block_id), -1)
        if position == -1:
            logger.warning("Cannot auto-connect unknown block %r", target_block_id)
            return updated

        pairs = []
        if position > 0:
            pairs.append((ordered[position - 1].id, ordered[position].id))
        if position < len(ordered) - 1:
            pairs.append((ordered[position].id, ordered[position + 1].id))

        added: List[Connection] = []
        for source_id, target_id in pairs:
            if any(conn.source_id == source_id for conn in updated + added):
                continue
            added.append(_default_connection(source_id, target_id, len(updated) + len(added)))
        updated.extend(added)
        logger.debug("Auto-connect added %d connection(s) around block %s", len(added), target_block_id)
        return updated

    updated = [conn for conn in updated if not _generated_between_current(conn)]
    added = []
    for block, next_block in zip(ordered, ordered[1:]):
        taken = any(
            conn.source_id == block.id and (conn.default_target_id == next_block.id or conn.has_rules())
            for conn in updated
        )
        if not taken:
            added.append(_default_connection(block.id, next_block.id, len(updated) + len(added)))
    updated.extend(added)
    logger.debug("Auto-connect added %d default connection(s)", len(added))
    return updated
