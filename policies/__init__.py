# policies/__init__.py

"""Concrete monitoring policies.

POLICIES maps a policy name to a factory returning ``(formula, signature)``.
"""

from .anomaly import Policy, anomaly_policy, block_proposal_anomaly, num_created_one_day, zero_fill_policy
from .delivery import delivery_policy, undelivered

POLICIES = {
    "block_proposal_anomaly": anomaly_policy,
    "num_created_one_day": zero_fill_policy,
    "proposal_delivery": delivery_policy,
}

__all__ = [
    "POLICIES",
    "Policy",
    "anomaly_policy",
    "block_proposal_anomaly",
    "delivery_policy",
    "num_created_one_day",
    "undelivered",
    "zero_fill_policy",
]
