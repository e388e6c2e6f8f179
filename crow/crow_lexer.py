"""
Crow Lexer - scans source text into tagged tokens.

The token patterns live in `grammar/crow_grammar.yaml` and are matched by a
koine parser. At each position the alternatives are tried in a fixed
priority order and the first that matches wins. Text that no alternative
matches stops the scan and is reported as a ParseError carrying the
unconsumed input.
"""

import re
from pathlib import Path
from typing import Any, List, Optional

from koine import Parser

from crow.crow_datatypes import Token, TokenKind, ParseError

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "crow_grammar.yaml"

# koine reports failures as "... at L<line>:C<col> ...".
_LOCATION = re.compile(r'L(\d+):C(\d+)')

_parser: Optional[Parser] = None


def get_parser() -> Parser:
    """Returns the shared grammar parser, loading it on first use."""
    global _parser
    if _parser is None:
        _parser = Parser.from_file(str(GRAMMAR_PATH))
    return _parser


def _leaves(ast: Any) -> List[dict]:
    """Collects the token leaves of a koine AST in source order."""
    found: List[dict] = []
    pending = [ast]
    while pending:
        node = pending.pop()
        if isinstance(node, list):
            pending.extend(reversed(node))
        elif isinstance(node, dict):
            if 'children' in node:
                pending.append(node['children'])
            else:
                found.append(node)
    return found


def _syntax_error(source: str, message: str, file: str) -> ParseError:
    m = _LOCATION.search(message)
    if m is None:
        return ParseError(message, file, None)
    line, col = int(m.group(1)), int(m.group(2))
    offset = sum(len(l) + 1 for l in source.split('\n')[:line - 1]) + col - 1
    snippet = source[offset:offset + 30]
    return ParseError(f"Unexpected input near {snippet!r}", file, line)


def tokenize(source: str, file: str = "<input>") -> List[Token]:
    """Scans the whole source, raising ParseError on unrecognised input."""
    result = get_parser().parse(source)
    if result['status'] != 'success':
        raise _syntax_error(source, result['message'], file)

    tokens: List[Token] = []
    for leaf in _leaves(result['ast']):
        kind = TokenKind[leaf['tag'].upper()]
        tokens.append(Token(kind, leaf['text'], leaf['text'], file, leaf['line']))
    return tokens
