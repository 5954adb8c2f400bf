# policies/anomaly.py

"""
Block proposal anomaly policy.

Every node reports the block proposals it sees. For each reporting node
and subnet, the number of proposals signed by each member of the subnet
over the last day should be roughly uniform. A signer whose count deviates
from the subnet mean by much more than the spread of all counts is flagged:

    (n - avg)^2 > threshold * var

where avg and var are the population mean and variance of the per-signer
counts seen by that reporting node in that subnet. Members that proposed
nothing still take part, with n = 0: a pair of nodes becomes relevant as
soon as both have been added to the subnet, and the per-signer count is
zero-filled for every relevant pair.

Operators are not shared between equal subformulas, so the counts formula
is evaluated four times: once for the rows themselves, once for the mean
and twice inside the variance. Each copy keeps its own day of proposals,
so window memory is four times that of the zero-fill policy alone.
"""

from typing import NamedTuple

from formula import builder as b
from formula.ast_nodes import Formula
from model.schema import RelationSchema, Signature
from model.value import ValueType

ONE_DAY = 86400

SIGNATURE = Signature.of(
    RelationSchema.of("node_added", subnet=ValueType.NODE_ID, node=ValueType.NODE_ID),
    RelationSchema.of(
        "block_proposal_added",
        reporting_node=ValueType.NODE_ID,
        subnet=ValueType.NODE_ID,
        signer=ValueType.NODE_ID,
        block_hash=ValueType.BYTES,
    ),
)

reporting_node, subnet, signer, block_hash = b.variables("reporting_node", "subnet", "signer", "block_hash")
n, avg_n, var_n = b.variables("n", "avg_n", "var_n")


def relevant_pairs() -> Formula:
    """(reporting_node, subnet, signer) with both nodes ever added to the subnet."""
    return b.once(b.atom("node_added", subnet, reporting_node)) & b.once(b.atom("node_added", subnet, signer))


def num_created_one_day(window: float = ONE_DAY) -> Formula:
    """n = proposals by `signer` seen by `reporting_node` in `subnet` during the last `window` seconds.

    Zero for relevant pairs without proposals in the window.
    """
    proposals = b.once(
        b.atom("block_proposal_added", reporting_node, subnet, signer, block_hash),
        (0, window),
    )
    counted = b.cnt(n, proposals, group_by=(reporting_node, subnet, signer))
    relevant = relevant_pairs()
    return b.with_default(counted & relevant, relevant, n, 0)


def block_proposal_anomaly(window: float = ONE_DAY, threshold: float = 9.0) -> Formula:
    """Signers whose daily proposal count is an outlier within their subnet."""
    counts = num_created_one_day(window)
    groups = (reporting_node, subnet)
    mean = b.avg(avg_n, n, counts, group_by=groups)
    variance = b.population_variance(var_n, n, counts, group_by=groups, mean="mean_n")
    deviation = (n - avg_n) * (n - avg_n)
    return b.conj(counts, mean, variance, b.gt(deviation, threshold * var_n))


class Policy(NamedTuple):
    formula: Formula
    signature: Signature


def anomaly_policy(window: float = ONE_DAY, threshold: float = 9.0) -> Policy:
    return Policy(block_proposal_anomaly(window, threshold), SIGNATURE)


def zero_fill_policy(window: float = ONE_DAY) -> Policy:
    return Policy(num_created_one_day(window), SIGNATURE)
