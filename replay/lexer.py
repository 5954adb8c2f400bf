# replay/lexer.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Lexical analyzers for fact logs and signature files using SLY

"""Lexical analyzers for replay input.

Fact logs list time points, each an ``@timestamp`` followed by the facts
observed at that time:

    @1000 node_added("subnet-a", "node-1") node_added("subnet-a", "node-2")
    @1030 block_proposal_added("node-1", "subnet-a", "node-2", 0x9f3c)(...)

Signature files declare each relation's fields:

    node_added(subnet:string, node:node_id)

Supported Tokens:
- Punctuation: @, (, ), comma, colon (signatures only)
- Values: integers, floats, double-quoted strings, 0x-prefixed hex blobs
- Identifiers: relation names, field names, type names and bare values
- Comments: from # to end of line
"""

from sly import Lexer
from utils.logger import get_logger


def _illegal_character(lexer: Lexer, t):
    """Handle illegal characters during tokenization.

    Raises:
        ValueError: Always raised with character and line information
    """
    logger = get_logger()

    illegal_char = t.value[0]
    logger.debug(f"Illegal character '{illegal_char}' at line {lexer.lineno}")

    # Skip the illegal character
    lexer.index += 1

    raise ValueError(f"Illegal character '{illegal_char}' at line {lexer.lineno}")


class LogLexer(Lexer):
    """SLY-based lexer for timestamped fact logs.

    Values are converted while tokenizing: INT and FLOAT carry numbers,
    STRING the unquoted text and HEX the decoded bytes.
    """

    tokens = {
        "AT",
        "ID",
        "INT",
        "FLOAT",
        "STRING",
        "HEX",
        "LPAREN",
        "RPAREN",
        "COMMA",
    }

    ignore = " \t\r"
    ignore_comment = r"\#.*"

    AT = r"@"
    LPAREN = r"\("
    RPAREN = r"\)"
    COMMA = r","

    # order matters: hex before numbers, floats before integers
    @_(r"0[xX][0-9a-fA-F]*")
    def HEX(self, t):
        digits = t.value[2:]
        if len(digits) % 2:
            raise ValueError(f"Odd number of hex digits in {t.value} at line {self.lineno}")
        t.value = bytes.fromhex(digits)
        return t

    @_(r"-?(\d+\.\d*([eE][-+]?\d+)?|\d+[eE][-+]?\d+|\.\d+([eE][-+]?\d+)?)")
    def FLOAT(self, t):
        t.value = float(t.value)
        return t

    @_(r"-?\d+")
    def INT(self, t):
        t.value = int(t.value)
        return t

    @_(r'"([^"\\\n]|\\.)*"')
    def STRING(self, t):
        t.value = t.value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
        return t

    # bare identifiers may carry dashes and dots (node ids, hashes)
    ID = r"[a-zA-Z_][a-zA-Z0-9_.\-]*"

    @_(r"\n+")
    def ignore_newline(self, t):
        self.lineno += t.value.count("\n")

    def error(self, t):
        _illegal_character(self, t)


class SignatureLexer(Lexer):
    """SLY-based lexer for relation signature files."""

    tokens = {"ID", "LPAREN", "RPAREN", "COMMA", "COLON"}

    ignore = " \t\r"
    ignore_comment = r"\#.*"

    LPAREN = r"\("
    RPAREN = r"\)"
    COMMA = r","
    COLON = r":"

    ID = r"[a-zA-Z_][a-zA-Z0-9_]*"

    @_(r"\n+")
    def ignore_newline(self, t):
        self.lineno += t.value.count("\n")

    def error(self, t):
        _illegal_character(self, t)
