#!/usr/bin/env python3
# run_monitor.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Command-line interface for policy monitoring with configurable logging levels

import sys
import argparse
from pathlib import Path
from typing import Dict, List

from formula.exceptions import FormulaError
from logic.config import EvaluatorConfig
from logic.runner import PolicyAndTraceMonitor
from logic.verdict import Report
from model.errors import InputError, SignatureConflict
from policies import POLICIES
from replay import read_signature, validate_trace_file
from replay.exceptions import TraceFormatError
from utils.logger import configure_logging, get_logger

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_TRACE_ERROR = 2
EXIT_FORMULA_ERROR = 3
EXIT_INTERRUPTED = 4
EXIT_UNEXPECTED = 5


def parse_policy_args(pairs: List[str]) -> Dict[str, float]:
    """Turn ``key=value`` strings into policy factory arguments.

    Raises:
        ValueError: If a pair is malformed or its value is not a number
    """
    args = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{pair}'")
        try:
            args[key] = int(value)
        except ValueError:
            args[key] = float(value)
    return args


def list_policies() -> None:
    """Print the available policies with their default formulas."""
    for name, factory in sorted(POLICIES.items()):
        policy = factory()
        print(f"{name}:")
        print(f"    {policy.formula}")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser for command line interface.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Horizon Bounded-Window Temporal Rule Evaluator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_monitor.py -p block_proposal_anomaly -t proposals.log
  python run_monitor.py -p proposal_delivery -t deliveries.log -v
  python run_monitor.py -p proposal_delivery -t deliveries.log -a deadline=300
  python run_monitor.py -p block_proposal_anomaly -t proposals.log --validate-only
  python run_monitor.py --list-policies

Fact log format:
  @1000 node_added("subnet-a", "node-1")("subnet-a", "node-2")
  @1030 block_proposal_added("node-1", "subnet-a", "node-2", 0x9f3c)

Signature file format:
  node_added(subnet:node_id, node:node_id)
        """,
    )

    parser.add_argument(
        "-p", "--policy", choices=sorted(POLICIES), help="Name of the policy to monitor"
    )

    parser.add_argument("-t", "--trace", type=Path, help="Path to the fact log")

    parser.add_argument(
        "-s", "--signature", type=Path, help="Path to an additional signature file"
    )

    parser.add_argument(
        "-a",
        "--policy-arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Policy parameter, e.g. window=3600 (repeatable)",
    )

    parser.add_argument(
        "--retention-limit",
        type=int,
        default=None,
        help="Maximum rows kept per window store (default: unlimited)",
    )

    parser.add_argument(
        "--lenient-signature",
        action="store_true",
        help="Ignore facts of undeclared relations instead of rejecting them",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output (overrides --verbose)"
    )

    parser.add_argument(
        "--validate-only", action="store_true", help="Only validate fact log format"
    )

    parser.add_argument(
        "--stop-on-violation",
        action="store_true",
        help="Stop reading the log at the first violation",
    )

    parser.add_argument(
        "--list-policies", action="store_true", help="List available policies and exit"
    )

    return parser


def main(argv=None) -> int:
    """Main entry point for policy monitoring.

    Returns:
        Exit code (0 no violations, 1 violations, 2-5 errors)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, debug=args.debug)
    logger = get_logger()

    if args.list_policies:
        list_policies()
        return EXIT_OK

    if args.policy is None or args.trace is None:
        parser.error("-p/--policy and -t/--trace are required")

    try:
        policy_args = parse_policy_args(args.policy_arg)
        formula, signature = POLICIES[args.policy](**policy_args)
        if args.signature is not None:
            signature = signature.merge(read_signature(str(args.signature)))

        if not args.validate_only:
            logger.info(f"📋 Policy loaded: {args.policy}")
            logger.info(f"    {formula}")

        # Validate fact log
        logger.info(f"🔍 Validating fact log: {args.trace}")
        count = validate_trace_file(
            str(args.trace), signature if not args.lenient_signature else None
        )

        if args.validate_only:
            print(f"✅ Fact log is valid: {count} facts")
            return EXIT_OK

        config = EvaluatorConfig(
            retention_limit=args.retention_limit,
            strict_signature=not args.lenient_signature,
        )
        runner = PolicyAndTraceMonitor(
            args.policy,
            str(args.trace),
            signature_path=str(args.signature) if args.signature is not None else None,
            config=config,
            policy_args=policy_args,
        )

        def print_report(report: Report) -> None:
            if report.satisfied or report.degraded:
                print(report.to_line())

        runner.run(stop_on_violation=args.stop_on_violation, on_report=print_report)

        if runner.violation_count:
            print(f"❌ {runner.violation_count} violating time points")
            return EXIT_VIOLATIONS
        print("✅ No violations")
        return EXIT_OK

    except (TraceFormatError, InputError, SignatureConflict) as e:
        logger.error(f"Input error: {e}")
        return EXIT_TRACE_ERROR

    except (FormulaError, TypeError, ValueError) as e:
        logger.error(f"Policy error: {e}")
        return EXIT_FORMULA_ERROR

    except KeyboardInterrupt:
        logger.error("Monitoring interrupted by user")
        return EXIT_INTERRUPTED

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        import traceback

        traceback.print_exc()
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
