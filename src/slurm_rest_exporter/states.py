"""Classification of free-form SLURM state flags into closed enumerations.

The REST API reports job and node states as lists of upper-case flags
("RUNNING", "MIXED", "DRAIN", ...). Each flag is lower-cased and matched
against an ordered table of prefix rules; the first rule that matches
decides the state. The rule tables are compiled once at import time.
"""

import re
from enum import Enum
from typing import TypeVar

from .errors import MissingFieldError, UnknownStateError
from .slurmrestapi.types import RawJobData, RawNodeData

E = TypeVar("E", bound=Enum)


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    COMPLETING = "completing"
    COMPLETED = "completed"
    CONFIGURING = "configuring"
    FAILED = "failed"
    TIMEOUT = "timeout"
    PREEMPTED = "preempted"
    NODE_FAIL = "node_fail"
    OUT_OF_MEMORY = "out_of_memory"


class NodeState(str, Enum):
    ALLOC = "alloc"
    COMP = "comp"
    DOWN = "down"
    DRAIN = "drain"
    FAIL = "fail"
    ERR = "err"
    IDLE = "idle"
    MAINT = "maint"
    MIX = "mix"
    RESV = "resv"
    NOT_RESPONDING = "not_responding"
    INVALID = "invalid"
    INVALID_REG = "invalid_reg"


def _compile_rules(
    rules: list[tuple[str, E]],
) -> tuple[tuple[re.Pattern[str], E], ...]:
    return tuple((re.compile(f"^{prefix}"), state) for prefix, state in rules)


_JOB_STATE_RULES = _compile_rules(
    [
        ("completed", JobState.COMPLETED),
        ("pending", JobState.PENDING),
        ("failed", JobState.FAILED),
        ("running", JobState.RUNNING),
        ("suspended", JobState.SUSPENDED),
        ("out_of_memory", JobState.OUT_OF_MEMORY),
        ("timeout", JobState.TIMEOUT),
        ("cancelled", JobState.CANCELLED),
        ("completing", JobState.COMPLETING),
        ("configuring", JobState.CONFIGURING),
        ("node_fail", JobState.NODE_FAIL),
        ("preempted", JobState.PREEMPTED),
    ],
)

# invalid_reg must come before invalid, otherwise it can never match.
_NODE_STATE_RULES = _compile_rules(
    [
        ("alloc", NodeState.ALLOC),
        ("comp", NodeState.COMP),
        ("down", NodeState.DOWN),
        ("drain", NodeState.DRAIN),
        ("fail", NodeState.FAIL),
        ("err", NodeState.ERR),
        ("idle", NodeState.IDLE),
        ("maint", NodeState.MAINT),
        ("mix", NodeState.MIX),
        ("res", NodeState.RESV),
        ("not_responding", NodeState.NOT_RESPONDING),
        ("invalid_reg", NodeState.INVALID_REG),
        ("invalid", NodeState.INVALID),
    ],
)


def _classify(
    token: str,
    rules: tuple[tuple[re.Pattern[str], E], ...],
    kind: str,
) -> E:
    state = token.lower()
    for pattern, unit in rules:
        if pattern.match(state):
            return unit
    raise UnknownStateError(kind, state)


def classify_job_state(token: str) -> JobState:
    """Map a single job state flag to a ``JobState``.

    Raises:
        UnknownStateError: If the flag matches no known prefix.
    """
    return _classify(token, _JOB_STATE_RULES, "job")


def classify_node_state(token: str) -> NodeState:
    """Map a single node state flag to a ``NodeState``.

    Raises:
        UnknownStateError: If the flag matches no known prefix.
    """
    return _classify(token, _NODE_STATE_RULES, "node")


def get_job_state(job: RawJobData) -> JobState:
    """Classify a job by the first entry of its state flags.

    Only index zero is consulted; downstream tallies assume exactly one
    state per job.

    Raises:
        MissingFieldError: If the job carries no state flags.
        UnknownStateError: If the first flag is not recognised.
    """
    if not job.job_state:
        msg = "job state not found in job"
        raise MissingFieldError(msg, field="job_state")
    return classify_job_state(job.job_state[0])


def get_node_states(node: RawNodeData) -> list[NodeState]:
    """Classify every state flag on a node, preserving order.

    A single unrecognised flag fails the whole call.

    Raises:
        MissingFieldError: If the node carries no state flags.
        UnknownStateError: If any flag is not recognised.
    """
    if not node.state:
        msg = "node state not found in node"
        raise MissingFieldError(msg, field="state")
    return [classify_node_state(flag) for flag in node.state]


def get_node_states_string(node: RawNodeData, delim: str = "|") -> str:
    """Return the node's classified states joined by ``delim``, e.g. ``mix|drain``."""
    return delim.join(state.value for state in get_node_states(node))
