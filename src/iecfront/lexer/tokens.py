"""Token kinds and the token record produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple

from iecfront.span import Span


class TokenKind(str, Enum):
    # Keywords: the value is the canonical upper-case spelling
    PROGRAM = "PROGRAM"
    END_PROGRAM = "END_PROGRAM"
    FUNCTION = "FUNCTION"
    END_FUNCTION = "END_FUNCTION"
    FUNCTION_BLOCK = "FUNCTION_BLOCK"
    END_FUNCTION_BLOCK = "END_FUNCTION_BLOCK"
    VAR = "VAR"
    VAR_INPUT = "VAR_INPUT"
    VAR_OUTPUT = "VAR_OUTPUT"
    VAR_IN_OUT = "VAR_IN_OUT"
    VAR_TEMP = "VAR_TEMP"
    VAR_GLOBAL = "VAR_GLOBAL"
    VAR_EXTERNAL = "VAR_EXTERNAL"
    VAR_ACCESS = "VAR_ACCESS"
    VAR_CONFIG = "VAR_CONFIG"
    END_VAR = "END_VAR"
    CONSTANT = "CONSTANT"
    RETAIN = "RETAIN"
    NON_RETAIN = "NON_RETAIN"
    AT = "AT"
    TYPE = "TYPE"
    END_TYPE = "END_TYPE"
    STRUCT = "STRUCT"
    END_STRUCT = "END_STRUCT"
    ARRAY = "ARRAY"
    OF = "OF"
    STRING = "STRING"
    WSTRING = "WSTRING"
    IF = "IF"
    THEN = "THEN"
    ELSIF = "ELSIF"
    ELSE = "ELSE"
    END_IF = "END_IF"
    CASE = "CASE"
    END_CASE = "END_CASE"
    FOR = "FOR"
    TO = "TO"
    BY = "BY"
    DO = "DO"
    END_FOR = "END_FOR"
    WHILE = "WHILE"
    END_WHILE = "END_WHILE"
    REPEAT = "REPEAT"
    UNTIL = "UNTIL"
    END_REPEAT = "END_REPEAT"
    EXIT = "EXIT"
    CONTINUE = "CONTINUE"
    RETURN = "RETURN"
    TRUE = "TRUE"
    FALSE = "FALSE"
    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    NOT = "NOT"
    MOD = "MOD"

    CLASS = "CLASS"
    END_CLASS = "END_CLASS"
    INTERFACE = "INTERFACE"
    END_INTERFACE = "END_INTERFACE"
    METHOD = "METHOD"
    END_METHOD = "END_METHOD"
    NAMESPACE = "NAMESPACE"
    END_NAMESPACE = "END_NAMESPACE"
    USING = "USING"
    EXTENDS = "EXTENDS"
    IMPLEMENTS = "IMPLEMENTS"
    FINAL = "FINAL"
    ABSTRACT = "ABSTRACT"
    OVERRIDE = "OVERRIDE"
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    PROTECTED = "PROTECTED"
    INTERNAL = "INTERNAL"
    REF_TO = "REF_TO"
    NULL = "NULL"

    BEGIN = "BEGIN"
    REGION = "REGION"
    END_REGION = "END_REGION"
    GOTO = "GOTO"
    DATA_BLOCK = "DATA_BLOCK"
    END_DATA_BLOCK = "END_DATA_BLOCK"
    ORGANIZATION_BLOCK = "ORGANIZATION_BLOCK"
    END_ORGANIZATION_BLOCK = "END_ORGANIZATION_BLOCK"

    # Operators and punctuation
    ASSIGN = ":="
    ARROW = "=>"
    PLUS_ASSIGN = "+="
    MINUS_ASSIGN = "-="
    STAR_ASSIGN = "*="
    SLASH_ASSIGN = "/="
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    POWER = "**"
    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    COLON = ":"
    SEMICOLON = ";"
    COMMA = ","
    DOT = "."
    RANGE = ".."
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    CARET = "^"
    HASH = "#"
    PERCENT = "%"

    # Literals and names
    IDENTIFIER = "<identifier>"
    QUOTED_IDENTIFIER = "<quoted identifier>"
    INTEGER = "<integer>"
    REAL = "<real>"
    STRING_LITERAL = "<string>"
    WSTRING_LITERAL = "<wstring>"
    TIME_LITERAL = "<time>"
    DATE_LITERAL = "<date>"
    TOD_LITERAL = "<time of day>"
    DT_LITERAL = "<date and time>"
    DIRECT_ADDRESS = "<direct address>"
    PRAGMA = "<pragma>"

    UNKNOWN = "<unknown>"
    ERROR = "<error>"
    EOF = "<eof>"


KEYWORD_KINDS: dict[str, TokenKind] = {
    k.value: k for k in TokenKind if not k.value.startswith("<") and k.value.isupper()
}

LITERAL_KINDS: frozenset[TokenKind] = frozenset({
    TokenKind.INTEGER,
    TokenKind.REAL,
    TokenKind.STRING_LITERAL,
    TokenKind.WSTRING_LITERAL,
    TokenKind.TIME_LITERAL,
    TokenKind.DATE_LITERAL,
    TokenKind.TOD_LITERAL,
    TokenKind.DT_LITERAL,
    TokenKind.TRUE,
    TokenKind.FALSE,
})

# prefix -> literal kind, checked when an identifier is immediately followed by '#'
TIME_PREFIXES: dict[str, TokenKind] = {
    "T": TokenKind.TIME_LITERAL,
    "TIME": TokenKind.TIME_LITERAL,
    "LTIME": TokenKind.TIME_LITERAL,
    "D": TokenKind.DATE_LITERAL,
    "DATE": TokenKind.DATE_LITERAL,
    "LDATE": TokenKind.DATE_LITERAL,
    "TOD": TokenKind.TOD_LITERAL,
    "TIME_OF_DAY": TokenKind.TOD_LITERAL,
    "LTOD": TokenKind.TOD_LITERAL,
    "LTIME_OF_DAY": TokenKind.TOD_LITERAL,
    "DT": TokenKind.DT_LITERAL,
    "DATE_AND_TIME": TokenKind.DT_LITERAL,
    "LDT": TokenKind.DT_LITERAL,
    "LDATE_AND_TIME": TokenKind.DT_LITERAL,
}


class AddressParts(NamedTuple):
    """Decoded ``%IX0.1`` style direct address."""

    area: str
    size: str
    byte: int
    bit: int | None


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    span: Span
    value: Any = None

    def is_keyword(self) -> bool:
        return self.kind.value in KEYWORD_KINDS

    def describe(self) -> str:
        """Short human-readable form used in error messages."""
        if self.kind == TokenKind.EOF:
            return "end of file"
        if self.kind in (TokenKind.IDENTIFIER, TokenKind.QUOTED_IDENTIFIER):
            return f"identifier '{self.text}'"
        if self.kind.value.startswith("<"):
            return f"{self.kind.value[1:-1]} '{self.text}'"
        return f"'{self.kind.value}'"
