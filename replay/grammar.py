# replay/grammar.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# LALR(1) grammars for fact logs and signature files using SLY

"""Fact log and signature grammars implemented with SLY.

Fact log grammar:

    log     : entries
    entries : entries entry | <empty>
    entry   : AT timestamp events
    events  : events event | <empty>
    event   : ID rows                   (one relation, one or more rows)
    rows    : rows row | row
    row     : LPAREN values RPAREN | LPAREN RPAREN
    values  : values COMMA value | value
    value   : INT | FLOAT | STRING | HEX | ID

Signature grammar:

    signature : decls
    decls     : decls decl | <empty>
    decl      : ID LPAREN fields RPAREN | ID LPAREN RPAREN
    fields    : fields COMMA field | field
    field     : ID COLON ID | ID        (named or positional field)

Parsers produce plain Python structures; turning them into Facts and
Signatures (and reporting semantic errors) is left to replay.reader.
"""

from typing import List, Tuple

from sly import Parser
from .exceptions import SignatureFormatError, TraceFormatError
from .lexer import LogLexer, SignatureLexer
from utils.logger import get_logger

# (timestamp, [(relation, fields)], line)
LogEntry = Tuple[object, List[Tuple[str, tuple]], int]


class _TraceParser(Parser):
    """SLY-based LALR(1) parser for fact logs."""

    tokens = LogLexer.tokens

    @_("entries")
    def log(self, p) -> List[LogEntry]:
        return p.entries

    @_("entries entry")
    def entries(self, p):
        p.entries.append(p.entry)
        return p.entries

    @_("")
    def entries(self, p):
        return []

    @_("AT timestamp events")
    def entry(self, p) -> LogEntry:
        return (p.timestamp, p.events, p.lineno)

    @_("INT", "FLOAT")
    def timestamp(self, p):
        return p[0]

    @_("events event")
    def events(self, p):
        p.events.extend(p.event)
        return p.events

    @_("")
    def events(self, p):
        return []

    @_("ID rows")
    def event(self, p):
        return [(p.ID, fields) for fields in p.rows]

    @_("rows row")
    def rows(self, p):
        p.rows.append(p.row)
        return p.rows

    @_("row")
    def rows(self, p):
        return [p.row]

    @_("LPAREN values RPAREN")
    def row(self, p):
        return tuple(p.values)

    @_("LPAREN RPAREN")
    def row(self, p):
        return ()

    @_("values COMMA value")
    def values(self, p):
        p.values.append(p.value)
        return p.values

    @_("value")
    def values(self, p):
        return [p.value]

    @_("INT", "FLOAT", "STRING", "HEX", "ID")
    def value(self, p):
        return p[0]

    def parse(self, text: str, lineno: int = 1) -> List[LogEntry]:
        """Parse fact log text into ``(timestamp, facts, line)`` entries.

        Args:
            text: Log text, possibly a chunk of a larger file
            lineno: Line number of the first line of `text`

        Raises:
            TraceFormatError: The text is not a well-formed fact log
        """
        logger = get_logger()
        try:
            result = super().parse(LogLexer().tokenize(text, lineno=lineno))
        except TraceFormatError:
            raise
        except Exception as e:
            logger.debug(f"Unexpected log parsing error: {e}")
            raise TraceFormatError(f"Parse failed: {e}") from e
        return result or []

    def error(self, token):
        """Handle syntax errors during parsing.

        Raises:
            TraceFormatError: Always raises with the token position
        """
        if token:
            raise TraceFormatError(
                f"Syntax error near '{token.value}' (type: {token.type})", token.lineno
            )
        raise TraceFormatError("Syntax error: unexpected end of log")


class _SignatureParser(Parser):
    """SLY-based LALR(1) parser for signature files."""

    tokens = SignatureLexer.tokens

    @_("decls")
    def signature(self, p):
        return p.decls

    @_("decls decl")
    def decls(self, p):
        p.decls.append(p.decl)
        return p.decls

    @_("")
    def decls(self, p):
        return []

    @_("ID LPAREN fields RPAREN")
    def decl(self, p):
        return (p.ID, p.fields, p.lineno)

    @_("ID LPAREN RPAREN")
    def decl(self, p):
        return (p.ID, [], p.lineno)

    @_("fields COMMA field")
    def fields(self, p):
        p.fields.append(p.field)
        return p.fields

    @_("field")
    def fields(self, p):
        return [p.field]

    @_("ID COLON ID")
    def field(self, p):
        return (p.ID0, p.ID1)

    @_("ID")
    def field(self, p):
        return (None, p.ID)

    def parse(self, text: str):
        """Parse signature text into ``(relation, [(field, type)], line)`` declarations.

        Raises:
            SignatureFormatError: The text is not a well-formed signature
        """
        try:
            result = super().parse(SignatureLexer().tokenize(text))
        except SignatureFormatError:
            raise
        except Exception as e:
            raise SignatureFormatError(f"Parse failed: {e}") from e
        return result or []

    def error(self, token):
        if token:
            raise SignatureFormatError(
                f"Syntax error near '{token.value}' (type: {token.type})", token.lineno
            )
        raise SignatureFormatError("Syntax error: unexpected end of signature")
