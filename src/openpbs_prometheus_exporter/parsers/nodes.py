"""Node state tally parser for ``pbsnodes -a`` output.

Well-known states are counted by occurrences of their ``state = <phrase>``
text across the whole output, so a state phrase quoted inside another
attribute (a node comment, for instance) is counted as well. State lines
whose phrase is not well known are kept under their literal phrase.
"""

import re
from collections import Counter
from dataclasses import dataclass, field

import structlog

from ..snapshot import NodeState

logger = structlog.get_logger(__name__)

# Every node record carries exactly one "Mom = <host>" line.
NODE_MARKER = "Mom ="

# Phrase printed after "state = " mapped to the state it is counted under.
STATE_PHRASES: tuple[tuple[str, NodeState], ...] = (
    ("free", NodeState.FREE),
    ("down", NodeState.DOWN),
    ("job-busy", NodeState.BUSY),
    ("busy", NodeState.BUSY),
    ("reserved", NodeState.RESERVED),
    ("offline", NodeState.OFFLINE),
    ("draining", NodeState.DRAINING),
    ("state-unknown,down", NodeState.UNKNOWN),
)

_STATE_LINE_RE = re.compile(r"^\s*state = (?P<phrase>.+?)\s*$")


@dataclass
class NodeTally:
    """Node counts from one pbsnodes output."""

    node_total: int = 0
    by_state: dict[str, int] = field(default_factory=dict)


_WELL_KNOWN_LABELS = frozenset(state.value for state in NodeState)


def _is_known_phrase(phrase: str) -> bool:
    return any(phrase.startswith(known) for known, _ in STATE_PHRASES)


def parse(text: str) -> NodeTally:
    """Count nodes and node states in pbsnodes output.

    Args:
        text: Raw output of ``pbsnodes -a``.

    Returns:
        Node tally with every well-known state present (possibly zero) plus
        one entry per unrecognized state phrase.
    """
    by_state: Counter[str] = Counter({state.value: 0 for state in NodeState})
    for phrase, state in STATE_PHRASES:
        by_state[state.value] += text.count(f"state = {phrase}")

    unknown_phrases: Counter[str] = Counter()
    for line in text.splitlines():
        match = _STATE_LINE_RE.match(line)
        if match is None:
            continue
        phrase = match.group("phrase")
        if _is_known_phrase(phrase):
            continue
        if phrase in _WELL_KNOWN_LABELS:
            # A literal such as "unknown" must not inflate the well-known count
            logger.debug("Ignoring state phrase matching a well-known label", state=phrase)
            continue
        unknown_phrases[phrase] += 1

    if unknown_phrases:
        logger.debug("Unrecognized node states", states=dict(unknown_phrases))
    by_state.update(unknown_phrases)

    return NodeTally(
        node_total=text.count(NODE_MARKER),
        by_state=dict(by_state),
    )
