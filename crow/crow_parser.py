"""
Builds the raw token tree from a token sequence.

    program := (atom | list)*
    list    := '<' (atom | list)* '>'

Every `<...>` region becomes a Python list holding atom tokens and nested
lists in source order. Bracket tokens themselves are not kept.
"""

from typing import Any, List

from crow.crow_datatypes import Token, TokenKind, ParseError
from crow.crow_lexer import tokenize


def parse_tokens(tokens: List[Token]) -> List[Any]:
    """Nests the tokens by bracket; unmatched brackets raise ParseError."""
    program: List[Any] = []
    # Open lists paired with the token that opened them.
    stack: List[tuple] = []
    current = program
    for tok in tokens:
        match tok.kind:
            case TokenKind.START_LIST:
                stack.append((current, tok))
                child: List[Any] = []
                current.append(child)
                current = child
            case TokenKind.END_LIST:
                if not stack:
                    raise ParseError("Unexpected '>' without a matching '<'", tok.file, tok.line)
                current, _ = stack.pop()
            case _:
                current.append(tok)
    if stack:
        _, opener = stack[-1]
        raise ParseError("Unterminated list: '<' is never closed", opener.file, opener.line)
    return program


def parse(source: str, file: str = "<input>") -> List[Any]:
    """Tokenizes and nests `source` into a raw (untyped) token tree."""
    return parse_tokens(tokenize(source, file))
