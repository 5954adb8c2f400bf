# logic/runner.py

"""
PolicyAndTraceMonitor: glue code that ties together a named policy and a
recorded fact log, driving a Monitor over every fact and collecting the
reports. Facts that the monitor rejects (type mismatches, out-of-order
timestamps) are logged and skipped; the replay carries on.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional

from model.errors import InputError
from model.schema import Signature
from policies import POLICIES
from replay import read_signature, read_trace
from replay.exceptions import TraceFormatError
from utils.logger import get_logger
from .config import EvaluatorConfig
from .monitor import Monitor
from .verdict import Report

logger = get_logger(__name__)


class PolicyAndTraceMonitor:
    """
    Given a policy name and a fact log, replays the log through a Monitor.
    An optional signature file extends (and must agree with) the policy's
    own signature.
    """

    def __init__(
        self,
        policy: str,
        trace_path: str,
        signature_path: Optional[str] = None,
        config: Optional[EvaluatorConfig] = None,
        policy_args: Optional[Dict[str, float]] = None,
    ):
        try:
            factory = POLICIES[policy]
        except KeyError:
            raise KeyError(f"Unknown policy '{policy}', expected one of {sorted(POLICIES)}") from None

        self.policy = policy
        self.trace_path = Path(trace_path)
        if not self.trace_path.exists():
            raise TraceFormatError(f"Trace file not found: {trace_path}")

        # 1) Build the policy formula and its signature
        self.formula, signature = factory(**(policy_args or {}))

        # 2) Merge in the user-supplied signature, if any
        if signature_path is not None:
            signature = signature.merge(read_signature(signature_path))
        self.signature: Signature = signature

        # 3) Instantiate the Monitor and register the rule
        self.monitor = Monitor(self.signature, config or EvaluatorConfig())
        self.handle = self.monitor.register(self.formula, name=policy)

        self.facts_read = 0
        self.reports: List[Report] = []

    def run(
        self,
        *,
        stop_on_violation: bool = False,
        on_report: Optional[Callable[[Report], None]] = None,
    ) -> List[Report]:
        """
        Replay every fact of the log, then finish the monitor so pending
        obligations are resolved. If stop_on_violation is True, stop reading
        at the first satisfied report (the open time point is still closed).
        """
        logger.info("=== Starting Evaluation ===")
        logger.info(f"Policy: {self.policy}")

        def collect(batch: List[Report]) -> bool:
            violated = False
            for report in batch:
                self.reports.append(report)
                if on_report is not None:
                    on_report(report)
                violated = violated or report.satisfied
            return violated

        for fact in read_trace(str(self.trace_path)):
            self.facts_read += 1
            try:
                batch = self.monitor.submit(fact)
            except InputError:
                # already logged by the monitor
                continue
            if collect(batch) and stop_on_violation:
                logger.info("Stopping at first violation.")
                break

        collect(self.monitor.finish())
        logger.final_summary(self.facts_read, self.monitor.time_points_closed, self.violation_count)
        logger.info("=== Evaluation Complete ===")
        return self.reports

    @property
    def violations(self) -> List[Report]:
        return [r for r in self.reports if r.satisfied]

    @property
    def violation_count(self) -> int:
        return len(self.violations)
