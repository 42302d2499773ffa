""" Routing: pick the next block from a connection and the respondent's answer. """
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .context import AnswerContext
from .guards import evaluate_group
from .models import Block, Connection

logger = logging.getLogger(__name__)

COMPLETED = "completed"
AWAITING_ANSWER = "awaiting_answer"
CYCLE = "cycle"
MAX_STEPS = "max_steps"
UNKNOWN_START = "unknown_start"


def resolve_next(
    source_block_id: str,
    connection: Optional[Connection],
    answers: Optional[AnswerContext],
    subtype: str = "",
) -> Optional[str]:
    """
    Return the id of the block to show after `source_block_id`, or None when
    routing ends there.

    Rules are tried in their stored order and the first match wins; when none
    match (or the connection is unconditional) the default target is used.
    """
    if connection is None:
        return None
    if connection.source_id != source_block_id:
        logger.warning(
            "Connection %s starts at %r, not %r; treating as no connection",
            connection.id, connection.source_id, source_block_id,
        )
        return None

    if connection.is_unconditional():
        return connection.default_target_id

    for rule in connection.rules:
        if evaluate_group(rule.condition_group, subtype, answers):
            logger.debug("Rule %s matched on %s -> %s", rule.id, source_block_id, rule.target_block_id)
            return rule.target_block_id

    logger.debug("No rule matched on %s, default -> %s", source_block_id, connection.default_target_id)
    return connection.default_target_id


@dataclass
class WalkResult:
    path: List[str] = field(default_factory=list)
    status: str = COMPLETED

    @property
    def current(self) -> Optional[str]:
        return self.path[-1] if self.path else None


class FormGraph:
    """
    Blocks and connections indexed by id for navigation.

    A source block with several connections routes through the one with the
    lowest order_index.
    """

    def __init__(self, blocks: List[Block], connections: List[Connection],
                 sequential_fallback: bool = True, max_steps: int = 500):
        self.blocks: Dict[str, Block] = {block.id: block for block in blocks}
        self.order: List[str] = [b.id for b in sorted(blocks, key=lambda b: b.order_index)]
        self.sequential_fallback = sequential_fallback
        self.max_steps = max_steps

        self.outgoing: Dict[str, Connection] = {}
        for conn in sorted(connections, key=lambda c: c.order_index):
            if conn.source_id in self.outgoing:
                logger.debug("Ignoring extra connection %s from %s", conn.id, conn.source_id)
                continue
            self.outgoing[conn.source_id] = conn

    def first_block_id(self) -> Optional[str]:
        return self.order[0] if self.order else None

    def _sequential_next(self, block_id: str) -> Optional[str]:
        position = self.order.index(block_id)
        if position + 1 < len(self.order):
            return self.order[position + 1]
        return None

    def next_block_id(self, block_id: str, answers: Optional[AnswerContext]) -> Optional[str]:
        block = self.blocks.get(block_id)
        if block is None:
            logger.warning("Unknown block %r, cannot route", block_id)
            return None

        connection = self.outgoing.get(block_id)
        if connection is None and self.sequential_fallback:
            return self._sequential_next(block_id)
        return resolve_next(block_id, connection, answers, block.subtype)

    def walk(self, answers: Dict[str, AnswerContext], start: Optional[str] = None) -> WalkResult:
        """
        Follow the route a respondent with `answers` takes, starting at `start`
        (or the first block). Stops at the end of the form, at the first
        unanswered block, or before revisiting a block.
        """
        result = WalkResult()
        current = start or self.first_block_id()
        if current is not None and current not in self.blocks:
            logger.warning("Cannot start navigation at unknown block %r", current)
            result.status = UNKNOWN_START
            return result
        seen = set()

        while current is not None:
            if current in seen:
                logger.warning("Navigation revisits block %s, stopping", current)
                result.status = CYCLE
                return result
            if len(result.path) >= self.max_steps:
                result.status = MAX_STEPS
                return result

            seen.add(current)
            result.path.append(current)
            if current not in answers:
                result.status = AWAITING_ANSWER
                return result
            current = self.next_block_id(current, answers[current])

        result.status = COMPLETED
        return result
