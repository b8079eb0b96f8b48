from __future__ import annotations

import io
import logging

from functools import wraps
from typing import Optional

from glot_ast import (
    BinaryExpression,
    Expression,
    IntegerLiteral,
    Operator as Op,
    UnaryExpression,
)

logger = logging.getLogger(__name__)

# Parenthesis nesting levels accepted before NestingTooDeep is raised. Each
# level costs a handful of Python frames, so this stays well below the
# interpreter recursion limit.
DEFAULT_MAX_DEPTH = 64


class ParseError(Exception):
    """The input is not a single well-formed expression.

    ``pos`` is the offset of the farthest position any alternative reached,
    ``expected`` the names of the tokens that would have been accepted there
    and ``found`` the offending character (``None`` at end of input).
    """

    description = "invalid expression"

    def __init__(self, pos: int, line: int, column: int,
                 expected=(), found: Optional[str] = None):
        self.pos = pos
        self.line = line
        self.column = column
        self.expected = frozenset(expected)
        self.found = found
        super().__init__(self._message())

    def _message(self):
        msg = f"line {self.line}, column {self.column}: {self.description}"
        if self.found is not None:
            msg += f" {self.found!r}"
        if self.expected:
            msg += ", expected " + " or ".join(sorted(self.expected))
        return msg


class UnexpectedCharacter(ParseError):
    description = "unexpected character"


class UnexpectedEndOfInput(ParseError):
    description = "unexpected end of input"


class TrailingInput(ParseError):
    description = "unexpected input after expression"


class NestingTooDeep(ParseError):
    description = "parentheses nested too deep"

    def __init__(self, pos: int, line: int, column: int, max_depth: int):
        self.max_depth = max_depth
        super().__init__(pos, line, column)

    def _message(self):
        return super()._message() + f" (limit is {self.max_depth})"


class Token:
    def __init__(self, value: str, lineno: int, column: int,
                 start: int, end: int):
        self.value = value
        self.lineno = lineno
        self.column = column
        self.start = start
        self.end = end

    def __repr__(self):
        lineno, column, start, end = (
            self.lineno, self.column, self.start, self.end)
        return f"Token({self.value!r}, {lineno=}, {column=}, {start=}, {end=})"

    def __str__(self):
        return repr(self.value)


class Reader:
    """
    Reads the source and produces a stream of characters.

    Reader supports strings and readable text streams. Streams are consumed
    in ``bufsize`` chunks.
    """

    def __init__(self, stream: str | io.TextIOBase, bufsize=4096):
        self.buffer = ""
        self.stream = None
        self.name = None
        self.bufsize = bufsize
        self.eof = False
        self.pointer = 0
        self.offset = 0
        self.line = 1
        self.column = 1

        if isinstance(stream, str):
            self.name = "<unicode string>"
            self.buffer = stream
        elif isinstance(stream, io.IOBase):
            self.name = getattr(stream, 'name', '<file>')
            self.stream = stream

            if not stream.readable():
                with_name = f": {self.name}" if self.name else ""
                raise ValueError("stream must be readable" + with_name)
        else:
            raise TypeError(
                f"expected str or text stream, got {type(stream).__name__}")

    def __iter__(self) -> Reader:
        return self

    def __next__(self) -> Token:
        try:
            char = self.buffer[self.pointer]
        except IndexError:
            if self.stream:
                self.update()
            try:
                char = self.buffer[self.pointer]
            except IndexError:
                self.eof = True
                raise StopIteration
        token = Token(char, self.line, self.column,
                      self.offset, self.offset + 1)
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pointer += 1
        self.offset += 1
        return token

    def update(self, length: int = 1) -> None:
        assert self.stream
        if self.eof:
            return
        self.buffer = self.buffer[self.pointer:]
        self.pointer = 0
        while len(self.buffer) < length:
            data = self.stream.read(self.bufsize)
            if data:
                self.buffer += data
            else:
                self.eof = True
                break


class MemoEntry:
    """A record in the memo table."""

    def __init__(self, result, pos: int):
        self.result = result
        self.pos = pos

    def __repr__(self):
        result, pos = self.result, self.pos
        return f"MemoEntry({result!r}, {pos=})"


def memoize(fn):

    @wraps(fn)
    def wrapper(self, *args):
        pos = self._mark()
        key = (fn, args, pos)
        memo = self._memos.get(key)
        if memo is None:
            result = fn(self, *args)
            endpos = self._mark()
            self._memos[key] = MemoEntry(result, endpos)
        else:
            result = memo.result
            self._reset(memo.pos)

        return result

    return wrapper


class Parser:
    """Packrat parser for glot arithmetic expressions.

    One method per grammar rule; a rule returns its result or ``None`` and
    leaves the position where it found it on failure. Alternatives are tried
    in order and the first success commits::

        Program    = SOI Expr EOI
        Clause     = SOI Expr EOF
        Expr       = BinaryExpr | UnaryExpr | Term
        BinaryExpr = Term (Operator Term)+
        UnaryExpr  = !Integer Operator Term
        Term       = Integer | "(" Expr ")"
        Integer    = ("+" | "-")? ASCII_DIGIT+
        Operator   = "+" | "-" | "*"
        EOF        = EOI | ";"

    Spaces and tabs are skipped after every token and before the first one,
    never inside a token. A parser instance handles a single parse.
    """

    def __init__(self, reader: Reader, max_depth: int = DEFAULT_MAX_DEPTH):
        self._memos = {}
        self._reader = reader
        self._chars = []
        self._pos = 0
        self._max_depth = max_depth
        self._depth = 0

        # Farthest failure, for error reporting
        self._failpos = 0
        self._expected = set()
        # Where the input continued after a complete top-level expression
        self._trailing = None
        self._result = None

    def _expectc(self, char: Optional[str] = None) -> Optional[Token]:
        if c := self._peek_char():
            if char is None or c.value == char:
                self._pos += 1
                return c
        return None

    def _lookahead(self, positive, fn, *args) -> Optional[list]:
        pos = self._mark()
        ok = fn(*args) is not None
        self._reset(pos)
        if ok == positive:
            return []
        return None

    def _loop(self, nonempty, fn, *args) -> Optional[list]:
        pos = lastpos = self._mark()
        tokens = []
        while (token := fn(*args)) is not None and self._mark() > lastpos:
            tokens.append(token)
            lastpos = self._pos
        self._reset(lastpos)
        if len(tokens) >= nonempty:
            return tokens
        self._reset(pos)
        return None

    def _ranges(self, *ranges) -> Optional[Token]:
        char = self._peek_char()
        if char is None:
            return None
        value = char.value
        for beg, end in ranges:
            if value >= beg and value <= end:
                self._pos += 1
                return char
        return None

    def _peek_char(self) -> Optional[Token]:
        if self._pos == len(self._chars):
            self._chars.append(next(self._reader, None))
        return self._chars[self._pos]

    def _mark(self) -> int:
        return self._pos

    def _reset(self, pos: int):
        self._pos = pos

    def _fail(self, pos: int, name: str):
        if pos > self._failpos:
            self._failpos = pos
            self._expected = {name}
        elif pos == self._failpos:
            self._expected.add(name)

    def _location(self, pos: int) -> tuple[int, int, Optional[str]]:
        saved = self._mark()
        self._reset(pos)
        token = self._peek_char()
        self._reset(saved)
        if token is None:
            return self._reader.line, self._reader.column, None
        return token.lineno, token.column, token.value

    @property
    def offset(self) -> int:
        return self._pos

    def parse(self) -> Optional[Expression]:
        self._result = self.Program()
        return self._result

    def parse_clause(self) -> Optional[Expression]:
        self._result = self.Clause()
        return self._result

    def error(self) -> Optional[ParseError]:
        """Describe the farthest failure of the last parse.

        Returns ``None`` if the parse succeeded or has not run.
        """
        if self._result is not None or not self._expected:
            return None
        pos = self._failpos
        line, column, found = self._location(pos)
        if found is None:
            cls = UnexpectedEndOfInput
        elif pos == self._trailing:
            cls = TrailingInput
        else:
            cls = UnexpectedCharacter
        return cls(pos, line, column, self._expected, found)

    @memoize
    def Program(self):
        pos = self._mark()
        if (
            self.WS() is not None and
            (expr := self.Expr()) is not None
        ):
            if self.EOI() is not None:
                return expr
            self._trailing = self._mark()
        self._reset(pos)
        return None

    @memoize
    def Clause(self):
        pos = self._mark()
        if (
            self.WS() is not None and
            (expr := self.Expr()) is not None
        ):
            if self.EOF() is not None:
                return expr
            self._trailing = self._mark()
        self._reset(pos)
        return None

    @memoize
    def Expr(self):
        pos = self._mark()
        if (alt := self.BinaryExpr()) is not None:
            return alt
        self._reset(pos)
        if (alt := self.UnaryExpr()) is not None:
            return alt
        self._reset(pos)
        if (alt := self.Term()) is not None:
            return alt
        self._reset(pos)
        return None

    @memoize
    def BinaryExpr(self):
        pos = self._mark()
        if (
            (first := self.Term()) is not None and
            (rest := self._loop(True, self.BinaryExpr_Tail)) is not None
        ):
            operators = [op for op, _ in rest]
            terms = [first] + [term for _, term in rest]
            return BinaryExpression(terms, operators)
        self._reset(pos)
        return None

    def BinaryExpr_Tail(self):
        pos = self._mark()
        if (
            (op := self.Operator()) is not None and
            (term := self.Term()) is not None
        ):
            return op, term
        self._reset(pos)
        return None

    @memoize
    def UnaryExpr(self):
        pos = self._mark()
        # A sign glued to its digits belongs to the integer literal
        if (
            self._lookahead(False, self.Integer) is not None and
            (op := self.Operator()) is not None and
            (term := self.Term()) is not None
        ):
            return UnaryExpression(op, term)
        self._reset(pos)
        return None

    @memoize
    def Term(self):
        pos = self._mark()
        if (integer := self.Integer()) is not None:
            return integer
        self._reset(pos)
        if (
            self.LPAREN() is not None and
            (expr := self._nested(pos)) is not None and
            self.RPAREN() is not None
        ):
            return expr
        self._reset(pos)
        return None

    def _nested(self, pos: int):
        if self._depth >= self._max_depth:
            line, column, _ = self._location(pos)
            raise NestingTooDeep(pos, line, column, self._max_depth)
        self._depth += 1
        try:
            return self.Expr()
        finally:
            self._depth -= 1

    @memoize
    def Integer(self):
        pos = self._mark()
        # The sign is part of the token: no whitespace before the digits
        if self._expectc('+') is not None:
            sign = Op.PLUS
        elif self._expectc('-') is not None:
            sign = Op.MINUS
        else:
            sign = None
        if (
            (digits := self._loop(True, self._ranges, ('0', '9'))) is not None
            and self.WS() is not None
        ):
            return IntegerLiteral(sign, ''.join(c.value for c in digits))
        if sign is not None:
            self._fail(self._mark(), 'digit')
        self._reset(pos)
        self._fail(pos, 'Integer')
        return None

    @memoize
    def Operator(self):
        pos = self._mark()
        if self.PLUS() is not None:
            return Op.PLUS
        self._reset(pos)
        if self.MINUS() is not None:
            return Op.MINUS
        self._reset(pos)
        if self.MUL() is not None:
            return Op.MULT
        self._reset(pos)
        self._fail(pos, 'Operator')
        return None

    @memoize
    def PLUS(self):
        pos = self._mark()
        if (
            (c := self._expectc('+')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        return None

    @memoize
    def MINUS(self):
        pos = self._mark()
        if (
            (c := self._expectc('-')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        return None

    @memoize
    def MUL(self):
        pos = self._mark()
        if (
            (c := self._expectc('*')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        return None

    @memoize
    def LPAREN(self):
        pos = self._mark()
        if (
            (c := self._expectc('(')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        self._fail(pos, "'('")
        return None

    @memoize
    def RPAREN(self):
        pos = self._mark()
        if (
            (c := self._expectc(')')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        self._fail(pos, "')'")
        return None

    @memoize
    def SEMICOLON(self):
        pos = self._mark()
        if (
            (c := self._expectc(';')) is not None and
            self.WS() is not None
        ):
            return c
        self._reset(pos)
        self._fail(pos, "';'")
        return None

    @memoize
    def WS(self):
        return self._loop(False, self.Spacing)

    def Spacing(self):
        if (c := self._expectc(' ')) is not None:
            return c
        if (c := self._expectc('\t')) is not None:
            return c
        return None

    @memoize
    def EOF(self):
        pos = self._mark()
        if (eoi := self.EOI()) is not None:
            return eoi
        self._reset(pos)
        if self.SEMICOLON() is not None:
            return []
        self._reset(pos)
        return None

    @memoize
    def EOI(self):
        pos = self._mark()
        if self._lookahead(False, self._expectc) is not None:
            return []
        self._reset(pos)
        self._fail(pos, 'EOI')
        return None


def _run(entry, text, max_depth):
    reader = Reader(text)
    logger.debug("parsing %s with %s", reader.name, entry.__name__)
    parser = Parser(reader, max_depth=max_depth)
    try:
        result = entry(parser)
    except NestingTooDeep as exc:
        logger.debug("parse of %s aborted: %s", reader.name, exc)
        raise
    if result is None:
        error = parser.error()
        logger.debug("parse of %s failed: %s", reader.name, error)
        raise error
    return parser, result


def parse(text: str | io.TextIOBase, *,
          max_depth: int = DEFAULT_MAX_DEPTH) -> Expression:
    """Parse ``text`` as exactly one expression.

    Leading and trailing spaces and tabs are ignored; anything else around
    the expression is an error. Raises a ``ParseError`` subclass on failure.
    """
    _, result = _run(Parser.parse, text, max_depth)
    return result


def parse_clause(text: str | io.TextIOBase, *,
                 max_depth: int = DEFAULT_MAX_DEPTH) -> tuple[Expression, int]:
    """Parse one expression closed by end of input or ``;``.

    Returns the expression and the offset just past the terminator and the
    whitespace after it, where the next clause starts.
    """
    parser, result = _run(Parser.parse_clause, text, max_depth)
    return result, parser.offset
