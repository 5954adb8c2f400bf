import argparse
import random
from typing import List

from model.fact import Fact
from model.value import NodeId
from policies.anomaly import SIGNATURE as ANOMALY_SIGNATURE
from policies.delivery import SIGNATURE as DELIVERY_SIGNATURE
from utils.trace_utils import generate_fact_log, generate_signature_file


def generate_facts(
    subnets: int,
    nodes_per_subnet: int,
    proposals: int,
    duration: int,
    anomalous_share: float,
    undelivered_share: float,
    seed: int,
) -> List[Fact]:
    # Scenario:
    #   All nodes join their subnet at t=0.
    #   Every proposal is seen by every node of the subnet (reporting_node),
    #   the signer is drawn uniformly except for one "noisy" signer per subnet
    #   that signs `anomalous_share` of the subnet's proposals.
    #   Each proposal is moved at its proposal time and delivered a few
    #   seconds later, except for `undelivered_share` of them.
    rng = random.Random(seed)
    facts: List[Fact] = []

    members = {
        f"subnet-{s}": [NodeId(f"node-{s}-{n}") for n in range(nodes_per_subnet)]
        for s in range(subnets)
    }
    for subnet, nodes in members.items():
        for node in nodes:
            facts.append(Fact("node_added", (NodeId(subnet), node), 0))

    noisy = {subnet: rng.choice(nodes) for subnet, nodes in members.items()}
    for _ in range(proposals):
        ts = rng.randrange(1, duration)
        subnet = rng.choice(sorted(members))
        nodes = members[subnet]
        signer = noisy[subnet] if rng.random() < anomalous_share else rng.choice(nodes)
        block_hash = rng.getrandbits(64).to_bytes(8, "big")

        for reporter in nodes:
            facts.append(
                Fact("block_proposal_added", (reporter, NodeId(subnet), signer, block_hash), ts)
            )
        facts.append(Fact("block_moved", (NodeId(subnet), block_hash), ts))
        if rng.random() >= undelivered_share:
            facts.append(
                Fact("block_delivered", (NodeId(subnet), block_hash), ts + rng.randrange(1, 60))
            )

    facts.sort(key=lambda fact: fact.timestamp)
    return facts


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Generate a seeded synthetic log of subnet membership, block "
        "proposals and block deliveries."
    )
    parser.add_argument("-o", "--output", required=True, help="Path to the output log file.")
    parser.add_argument("--signature", help="Also write the matching signature file here.")
    parser.add_argument("--subnets", type=int, default=2)
    parser.add_argument("--nodes", type=int, default=4, help="Nodes per subnet.")
    parser.add_argument("--proposals", type=int, default=200)
    parser.add_argument("--duration", type=int, default=86400, help="Seconds covered by the log.")
    parser.add_argument("--anomalous-share", type=float, default=0.3)
    parser.add_argument("--undelivered-share", type=float, default=0.05)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    facts = generate_facts(
        args.subnets,
        args.nodes,
        args.proposals,
        args.duration,
        args.anomalous_share,
        args.undelivered_share,
        args.seed,
    )
    lines = generate_fact_log(
        args.output,
        facts,
        header=f"seed={args.seed} subnets={args.subnets} nodes={args.nodes} proposals={args.proposals}",
    )
    print(f"Wrote {len(facts)} facts over {lines} time points to {args.output}")

    if args.signature:
        generate_signature_file(args.signature, ANOMALY_SIGNATURE.merge(DELIVERY_SIGNATURE))
        print(f"Wrote signature to {args.signature}")
