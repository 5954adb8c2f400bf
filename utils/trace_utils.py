# utils/trace_utils.py

"""
Writers for the replay formats: timestamped fact logs and signature files.

Used by the experiment trace generator and by tests that need a log on disk.
Facts sharing a timestamp are written on one ``@ts`` line, and tuples of the
same relation are grouped after a single relation name, matching what
replay.reader accepts.
"""

from itertools import groupby
from typing import Dict, Iterable, List, Tuple

from model.fact import Fact
from model.schema import Signature
from model.value import Value, format_value


def format_time_point(timestamp, facts: Iterable[Fact]) -> str:
    """Render all facts of one time point as a single log line."""
    by_relation: Dict[str, List[Tuple[Value, ...]]] = {}
    for fact in facts:
        by_relation.setdefault(fact.relation, []).append(fact.fields)

    parts = [f"@{timestamp}"]
    for relation in sorted(by_relation):
        tuples = "".join(
            "(" + ", ".join(format_value(v) for v in fields) + ")"
            for fields in by_relation[relation]
        )
        parts.append(f"{relation}{tuples}")
    return " ".join(parts)


def generate_fact_log(filename: str, facts: Iterable[Fact], header: str = "") -> int:
    """
    Write facts to a log file, one line per timestamp.

    Args:
        filename: Output path.
        facts: Facts in non-decreasing timestamp order.
        header: Optional comment written at the top of the file.

    Returns:
        Number of time point lines written.
    """
    lines = 0
    with open(filename, "w") as f:
        if header:
            for comment in header.splitlines():
                f.write(f"# {comment}\n")
        for timestamp, group in groupby(facts, key=lambda fact: fact.timestamp):
            f.write(format_time_point(timestamp, group) + "\n")
            lines += 1
    return lines


def generate_signature_file(filename: str, signature: Signature) -> None:
    """Write one ``rel(field:type, ...)`` declaration per line."""
    with open(filename, "w") as f:
        for schema in signature:
            f.write(f"{schema}\n")
