# replay/reader.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Fact log and signature file readers

from pathlib import Path
from typing import Iterator, List, Optional

from model.errors import SignatureConflict, TypeMismatch
from model.fact import Fact
from model.schema import RelationSchema, Signature
from model.value import parse_type_name
from utils.logger import get_logger
from .exceptions import SignatureFormatError, TraceFormatError
from .grammar import LogEntry, _SignatureParser, _TraceParser


def _facts_of(entries: List[LogEntry]) -> Iterator[Fact]:
    for timestamp, events, _ in entries:
        for relation, fields in events:
            yield Fact(relation, fields, timestamp)


def parse_log(text: str) -> List[Fact]:
    """Parse fact log text into facts, in log order.

    Raises:
        TraceFormatError: The text is not a well-formed fact log
    """
    return list(_facts_of(_TraceParser().parse(text)))


def read_trace(filepath: str) -> Iterator[Fact]:
    """Read facts from a log file.

    The file is parsed one time point at a time (a chunk starts at every line
    beginning with ``@``), so arbitrarily long logs stream in constant memory.

    Expected format:
        # comment
        @1000 node_added("subnet-a", "node-1") node_added("subnet-a", "node-2")
        @1030 block_proposal_added("node-1", "subnet-a", "node-2", 0x9f3c)

    Args:
        filepath: Path to the log file

    Yields:
        Fact: Parsed facts in file order

    Raises:
        TraceFormatError: If the file cannot be read or a chunk cannot be parsed
    """
    logger = get_logger()
    path = Path(filepath)

    if not path.exists():
        raise TraceFormatError(f"Trace file not found: {filepath}")

    logger.debug(f"Reading trace file: {filepath}")

    parser = _TraceParser()
    try:
        with open(path, "r", encoding="utf-8") as file:
            chunk: List[str] = []
            chunk_start = 1
            for lineno, line in enumerate(file, start=1):
                if line.lstrip().startswith("@") and chunk:
                    yield from _facts_of(parser.parse("".join(chunk), chunk_start))
                    chunk = []
                if not chunk:
                    chunk_start = lineno
                chunk.append(line)
            if chunk:
                yield from _facts_of(parser.parse("".join(chunk), chunk_start))
    except (OSError, UnicodeDecodeError) as e:
        raise TraceFormatError(f"Error reading trace file {filepath}: {e}") from e


def validate_trace_file(filepath: str, signature: Optional[Signature] = None) -> int:
    """Validate a log file's syntax, timestamp order and (optionally) types.

    Args:
        filepath: Path to the log file
        signature: If given, every fact must match it

    Returns:
        Number of facts in the file

    Raises:
        TraceFormatError: If validation fails
    """
    logger = get_logger()
    logger.debug(f"Validating trace file: {filepath}")

    count = 0
    last = None
    try:
        for fact in read_trace(filepath):
            if last is not None and fact.timestamp < last:
                raise TraceFormatError(f"Timestamp {fact.timestamp} of {fact} precedes {last}")
            last = fact.timestamp
            if signature is not None:
                try:
                    signature.check(fact)
                except TypeMismatch as e:
                    raise TraceFormatError(str(e)) from e
            count += 1
    except TraceFormatError as e:
        print(f"❌ Trace validation failed: {e}")
        logger.debug(f"Trace validation failed: {e}")
        raise
    logger.debug(f"Trace validation successful: {count} facts")
    return count


def parse_signature(text: str) -> Signature:
    """Parse ``rel(field:type, ...)`` declarations into a Signature.

    Positional fields (a bare type) are named ``f0``, ``f1``, ...

    Raises:
        SignatureFormatError: Syntax error, unknown type or conflicting declarations
    """
    signature = Signature()
    for relation, fields, lineno in _SignatureParser().parse(text):
        typed = []
        for position, (name, type_name) in enumerate(fields):
            try:
                typed.append((name or f"f{position}", parse_type_name(type_name)))
            except ValueError as e:
                raise SignatureFormatError(f"{relation}: {e}", lineno) from e
        try:
            signature.declare(RelationSchema(relation, tuple(typed)))
        except SignatureConflict as e:
            raise SignatureFormatError(str(e), lineno) from e
    return signature


def read_signature(filepath: str) -> Signature:
    """Read a signature file.

    Raises:
        SignatureFormatError: If the file cannot be read or parsed
    """
    path = Path(filepath)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise SignatureFormatError(f"Signature file not found: {filepath}") from None
    except OSError as e:
        raise SignatureFormatError(f"Could not read signature file {filepath}: {e}") from e
    signature = parse_signature(text)
    get_logger().debug(f"Read {len(signature)} relation declarations from {filepath}")
    return signature
