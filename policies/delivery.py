# policies/delivery.py

"""
Proposal delivery policy: a block moved into a subnet's queue must be
delivered within `deadline` seconds. Violations are only known once the
deadline has passed, so the rule reports each time point `deadline`
seconds after it.
"""

from formula import builder as b
from formula.ast_nodes import Formula
from model.schema import RelationSchema, Signature
from model.value import ValueType
from .anomaly import Policy

DEFAULT_DEADLINE = 600

SIGNATURE = Signature.of(
    RelationSchema.of("block_moved", subnet=ValueType.NODE_ID, block_hash=ValueType.BYTES),
    RelationSchema.of("block_delivered", subnet=ValueType.NODE_ID, block_hash=ValueType.BYTES),
)


def undelivered(deadline: float = DEFAULT_DEADLINE) -> Formula:
    subnet, block_hash = b.variables("subnet", "block_hash")
    moved = b.atom("block_moved", subnet, block_hash)
    delivered = b.eventually(b.atom("block_delivered", subnet, block_hash), (0, deadline))
    return moved & ~delivered


def delivery_policy(deadline: float = DEFAULT_DEADLINE) -> Policy:
    return Policy(undelivered(deadline), SIGNATURE)
