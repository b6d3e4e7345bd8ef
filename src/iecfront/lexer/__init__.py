"""Lexer for the Structured Text dialects.

Public API::

    from iecfront.lexer import tokenize, TokenKind

    tokens = tokenize("IF x THEN y := 1; END_IF;")
    assert tokens[0].kind == TokenKind.IF
"""

from ._scanner import Lexer, tokenize
from .tokens import AddressParts, Token, TokenKind

__all__ = ["AddressParts", "Lexer", "Token", "TokenKind", "tokenize"]
