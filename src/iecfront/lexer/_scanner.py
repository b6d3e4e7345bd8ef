"""Position-based scanner turning source text into spanned tokens.

The scanner never raises.  Characters it does not understand become
``UNKNOWN`` tokens and malformed literals or comments become ``ERROR`` tokens
whose value is the ``ParseErrorKind`` the parser should report.
"""

from __future__ import annotations

from collections.abc import Iterator

from iecfront.dialect import GENERIC_ST, Dialect
from iecfront.errors import ParseErrorKind
from iecfront.span import Span

from .tokens import KEYWORD_KINDS, TIME_PREFIXES, AddressParts, Token, TokenKind

_ESCAPES: dict[str, str] = {
    "L": "\n",
    "N": "\n",
    "P": "\f",
    "R": "\r",
    "T": "\t",
    "$": "$",
    "'": "'",
    '"': '"',
}

_HEX_DIGITS = "0123456789abcdefABCDEF"
_BASES = {2: "01", 8: "01234567", 10: "0123456789", 16: _HEX_DIGITS}

_TIME_BODY_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_:.-"
)

_ADDRESS_AREAS = "IQM"
_ADDRESS_SIZES = "XBWDL"

# (text, kind), longest first within each leading character
_OPERATORS: list[tuple[str, TokenKind]] = [
    (":=", TokenKind.ASSIGN),
    ("=>", TokenKind.ARROW),
    ("<>", TokenKind.NE),
    ("<=", TokenKind.LE),
    (">=", TokenKind.GE),
    ("**", TokenKind.POWER),
    ("..", TokenKind.RANGE),
    ("+", TokenKind.PLUS),
    ("-", TokenKind.MINUS),
    ("*", TokenKind.STAR),
    ("/", TokenKind.SLASH),
    ("=", TokenKind.EQ),
    ("<", TokenKind.LT),
    (">", TokenKind.GT),
    (":", TokenKind.COLON),
    (";", TokenKind.SEMICOLON),
    (",", TokenKind.COMMA),
    (".", TokenKind.DOT),
    ("(", TokenKind.LPAREN),
    (")", TokenKind.RPAREN),
    ("[", TokenKind.LBRACKET),
    ("]", TokenKind.RBRACKET),
    ("^", TokenKind.CARET),
    ("#", TokenKind.HASH),
    ("&", TokenKind.AND),
]

_COMPOUND_ASSIGN: list[tuple[str, TokenKind]] = [
    ("+=", TokenKind.PLUS_ASSIGN),
    ("-=", TokenKind.MINUS_ASSIGN),
    ("*=", TokenKind.STAR_ASSIGN),
    ("/=", TokenKind.SLASH_ASSIGN),
]


def _is_ident_start(c: str) -> bool:
    return c == "_" or ("a" <= c <= "z") or ("A" <= c <= "Z")


def _is_ident_char(c: str) -> bool:
    return _is_ident_start(c) or ("0" <= c <= "9")


class Lexer:
    """Scanner over one source string for one dialect."""

    def __init__(self, source: str, dialect: Dialect = GENERIC_ST) -> None:
        self.source = source
        self.dialect = dialect
        self.pos = 1 if source.startswith("\ufeff") else 0
        self._keywords = {
            word: KEYWORD_KINDS[word] for word in dialect.keywords()
        }
        self._operators = (
            _COMPOUND_ASSIGN + _OPERATORS if dialect.compound_assignment else _OPERATORS
        )

    # -- public ------------------------------------------------------------

    def next_token(self) -> Token:
        """Return the next token; ``EOF`` is returned forever at the end."""
        error = self._skip_trivia()
        if error is not None:
            return error
        src = self.source
        if self.pos >= len(src):
            return Token(TokenKind.EOF, "", Span(start=len(src), end=len(src)))

        c = src[self.pos]
        if _is_ident_start(c):
            return self._scan_identifier()
        if c.isdigit() and c.isascii():
            return self._scan_number()
        if c == "'":
            return self._scan_string("'", TokenKind.STRING_LITERAL)
        if c == '"':
            if self.dialect.quoted_identifiers:
                return self._scan_quoted_identifier()
            return self._scan_string('"', TokenKind.WSTRING_LITERAL)
        if c == "%":
            return self._scan_direct_address()
        if c == "{" and self.dialect.pragmas:
            return self._scan_pragma()

        for text, kind in self._operators:
            if src.startswith(text, self.pos):
                start = self.pos
                self.pos += len(text)
                return Token(kind, text, Span(start=start, end=self.pos))

        start = self.pos
        self.pos += 1
        return Token(TokenKind.UNKNOWN, c, Span(start=start, end=self.pos), c)

    def tokenize(self) -> list[Token]:
        """All remaining tokens, ending with (and including) ``EOF``."""
        tokens = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.kind == TokenKind.EOF:
                return tokens

    def __iter__(self) -> Iterator[Token]:
        while True:
            tok = self.next_token()
            yield tok
            if tok.kind == TokenKind.EOF:
                return

    # -- trivia ------------------------------------------------------------

    def _skip_trivia(self) -> Token | None:
        src = self.source
        n = len(src)
        while self.pos < n:
            c = src[self.pos]
            if c.isspace():
                self.pos += 1
            elif src.startswith("//", self.pos):
                end = src.find("\n", self.pos)
                self.pos = n if end == -1 else end + 1
            elif src.startswith("(*", self.pos):
                error = self._skip_nested_comment()
                if error is not None:
                    return error
            elif src.startswith("/*", self.pos):
                end = src.find("*/", self.pos + 2)
                if end == -1:
                    return self._unterminated_comment(self.pos)
                self.pos = end + 2
            else:
                break
        return None

    def _skip_nested_comment(self) -> Token | None:
        src = self.source
        start = self.pos
        depth = 0
        while self.pos < len(src):
            if src.startswith("(*", self.pos):
                depth += 1
                self.pos += 2
            elif src.startswith("*)", self.pos):
                depth -= 1
                self.pos += 2
                if depth == 0:
                    return None
            else:
                self.pos += 1
        return self._unterminated_comment(start)

    def _unterminated_comment(self, start: int) -> Token:
        self.pos = len(self.source)
        return Token(
            TokenKind.ERROR,
            self.source[start:start + 2],
            Span(start=start, end=self.pos),
            ParseErrorKind.UNTERMINATED_COMMENT,
        )

    # -- names -------------------------------------------------------------

    def _scan_identifier(self) -> Token:
        src = self.source
        start = self.pos
        while self.pos < len(src) and _is_ident_char(src[self.pos]):
            self.pos += 1
        text = src[start:self.pos]
        upper = text.upper()

        if self.pos < len(src) and src[self.pos] == "#" and upper in TIME_PREFIXES:
            return self._scan_time_literal(start, TIME_PREFIXES[upper])

        kind = self._keywords.get(upper)
        if kind is not None:
            return Token(kind, text, Span(start=start, end=self.pos))
        return Token(TokenKind.IDENTIFIER, text, Span(start=start, end=self.pos), text)

    def _scan_time_literal(self, start: int, kind: TokenKind) -> Token:
        src = self.source
        self.pos += 1  # '#'
        body_start = self.pos
        while self.pos < len(src) and src[self.pos] in _TIME_BODY_CHARS:
            # a trailing '..' belongs to a range, never to the literal
            if src.startswith("..", self.pos):
                break
            # '-' is a sign or a date separator only when a digit follows
            if src[self.pos] == "-" and not (
                self.pos + 1 < len(src) and src[self.pos + 1].isdigit()
            ):
                break
            self.pos += 1
        return Token(kind, src[start:self.pos], Span(start=start, end=self.pos), src[body_start:self.pos])

    def _scan_quoted_identifier(self) -> Token:
        src = self.source
        start = self.pos
        end = src.find('"', start + 1)
        if end == -1:
            self.pos = len(src)
            return Token(
                TokenKind.ERROR, src[start:], Span(start=start, end=self.pos),
                ParseErrorKind.UNCLOSED_STRING,
            )
        self.pos = end + 1
        return Token(
            TokenKind.QUOTED_IDENTIFIER, src[start:self.pos],
            Span(start=start, end=self.pos), src[start + 1:end],
        )

    # -- numbers -----------------------------------------------------------

    def _read_digits(self, allowed: str) -> str:
        src = self.source
        start = self.pos
        while self.pos < len(src) and (src[self.pos] in allowed or src[self.pos] == "_"):
            self.pos += 1
        return src[start:self.pos]

    def _scan_number(self) -> Token:
        src = self.source
        start = self.pos
        digits = self._read_digits(_BASES[10])

        if self.pos < len(src) and src[self.pos] == "#":
            return self._scan_based_number(start, digits)

        is_real = False
        if (
            self.pos + 1 < len(src)
            and src[self.pos] == "."
            and src[self.pos + 1].isdigit()
        ):
            is_real = True
            self.pos += 1
            self._read_digits(_BASES[10])

        if self.pos < len(src) and src[self.pos] in "eE":
            after = self.pos + 1
            if after < len(src) and src[after] in "+-":
                after += 1
            if after < len(src) and src[after].isdigit():
                is_real = True
                self.pos = after
                self._read_digits(_BASES[10])

        text = src[start:self.pos]
        clean = text.replace("_", "")
        span = Span(start=start, end=self.pos)
        if "__" in text or text.endswith("_"):
            return Token(TokenKind.ERROR, text, span, ParseErrorKind.INVALID_NUMBER)
        if is_real:
            return Token(TokenKind.REAL, text, span, float(clean))
        return Token(TokenKind.INTEGER, text, span, int(clean))

    def _scan_based_number(self, start: int, base_text: str) -> Token:
        src = self.source
        self.pos += 1  # '#'
        base = int(base_text.replace("_", "")) if base_text.replace("_", "") else 0
        body = self._read_digits(_HEX_DIGITS)
        text = src[start:self.pos]
        span = Span(start=start, end=self.pos)
        allowed = _BASES.get(base)
        clean = body.replace("_", "")
        if allowed is None or not clean or any(ch not in allowed for ch in clean):
            return Token(TokenKind.ERROR, text, span, ParseErrorKind.INVALID_NUMBER)
        return Token(TokenKind.INTEGER, text, span, int(clean, base))

    # -- strings -----------------------------------------------------------

    def _scan_string(self, quote: str, kind: TokenKind) -> Token:
        src = self.source
        start = self.pos
        self.pos += 1
        hex_width = 4 if quote == '"' else 2
        chars: list[str] = []
        while self.pos < len(src):
            c = src[self.pos]
            if c == quote:
                if src.startswith(quote * 2, self.pos):
                    chars.append(quote)
                    self.pos += 2
                    continue
                self.pos += 1
                return Token(kind, src[start:self.pos], Span(start=start, end=self.pos), "".join(chars))
            if c == "$" and self.pos + 1 < len(src):
                nxt = src[self.pos + 1]
                escaped = _ESCAPES.get(nxt.upper())
                if escaped is not None:
                    chars.append(escaped)
                    self.pos += 2
                    continue
                code = src[self.pos + 1:self.pos + 1 + hex_width]
                if len(code) == hex_width and all(h in _HEX_DIGITS for h in code):
                    chars.append(chr(int(code, 16)))
                    self.pos += 1 + hex_width
                    continue
            chars.append(c)
            self.pos += 1
        return Token(
            TokenKind.ERROR, src[start:], Span(start=start, end=len(src)),
            ParseErrorKind.UNCLOSED_STRING,
        )

    # -- addresses and pragmas --------------------------------------------

    def _scan_direct_address(self) -> Token:
        src = self.source
        start = self.pos
        area_pos = start + 1
        if area_pos >= len(src) or src[area_pos].upper() not in _ADDRESS_AREAS:
            self.pos += 1
            return Token(TokenKind.PERCENT, "%", Span(start=start, end=self.pos))

        area = src[area_pos].upper()
        self.pos = area_pos + 1
        size = "X"
        if self.pos < len(src) and src[self.pos].upper() in _ADDRESS_SIZES:
            size = src[self.pos].upper()
            self.pos += 1
        byte_digits = self._read_plain_digits()
        if not byte_digits:
            while self.pos < len(src) and _is_ident_char(src[self.pos]):
                self.pos += 1
            return Token(
                TokenKind.ERROR, src[start:self.pos], Span(start=start, end=self.pos),
                ParseErrorKind.INVALID_DIRECT_ADDRESS,
            )
        bit = None
        if (
            self.pos + 1 < len(src)
            and src[self.pos] == "."
            and src[self.pos + 1].isdigit()
        ):
            self.pos += 1
            bit = int(self._read_plain_digits())
        return Token(
            TokenKind.DIRECT_ADDRESS,
            src[start:self.pos],
            Span(start=start, end=self.pos),
            AddressParts(area=area, size=size, byte=int(byte_digits), bit=bit),
        )

    def _read_plain_digits(self) -> str:
        src = self.source
        start = self.pos
        while self.pos < len(src) and "0" <= src[self.pos] <= "9":
            self.pos += 1
        return src[start:self.pos]

    def _scan_pragma(self) -> Token:
        src = self.source
        start = self.pos
        end = src.find("}", start + 1)
        if end == -1:
            self.pos = len(src)
            return Token(
                TokenKind.ERROR, src[start:], Span(start=start, end=self.pos),
                ParseErrorKind.UNCLOSED_BRACKET,
            )
        self.pos = end + 1
        return Token(
            TokenKind.PRAGMA, src[start:self.pos], Span(start=start, end=self.pos),
            src[start + 1:end].strip(),
        )


def tokenize(source: str, dialect: Dialect = GENERIC_ST) -> list[Token]:
    """Lex *source* completely.  The last token is always ``EOF``."""
    return Lexer(source, dialect).tokenize()
