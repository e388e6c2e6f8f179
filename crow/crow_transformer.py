"""
Transforms the raw token tree into the evaluator's AST.

Literal tokens get their typed values (unescaped strings, parsed numbers)
and every token is stamped with the file it came from.
"""

import dataclasses
import re
from typing import Any, List, Optional

from crow.crow_datatypes import Token, TokenKind
from crow.crow_parser import parse

_ESCAPE = re.compile(r'\\(u[0-9a-fA-F]{4}|.)', re.DOTALL)

_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    'b': '\b',
    'f': '\f',
}


def unescape(body: str) -> str:
    """Resolves backslash escapes; an unknown escape stands for the character itself."""
    def repl(m):
        esc = m.group(1)
        if len(esc) == 5:
            return chr(int(esc[1:], 16))
        return _SIMPLE_ESCAPES.get(esc, esc)
    return _ESCAPE.sub(repl, body)


def parse_number(text: str):
    """Parses a NUMBER lexeme; falls back to the raw text if it does not parse."""
    try:
        if '.' not in text:
            return int(text)
        return float(text)
    except ValueError:
        return text


class CrowTransformer:
    def __init__(self, file: Optional[str] = None):
        self.file = file

    def _stamp(self, tok: Token, value: Any) -> Token:
        return dataclasses.replace(tok, value=value, file=self.file if self.file is not None else tok.file)

    def transform(self, node: Any) -> Any:
        """Rebuilds the tree with typed tokens; nesting depth costs no Python stack."""
        if not isinstance(node, list):
            return self._token(node)
        result: List[Any] = []
        pending = [(node, result)]
        while pending:
            source, target = pending.pop()
            for item in source:
                if isinstance(item, list):
                    child: List[Any] = []
                    target.append(child)
                    pending.append((item, child))
                else:
                    target.append(self._token(item))
        return result

    def _token(self, node: Token) -> Token:
        match node.kind:
            case TokenKind.STRING:
                return self._stamp(node, unescape(node.text[1:-1]))
            case TokenKind.NUMBER:
                return self._stamp(node, parse_number(node.text))
            case _:
                return self._stamp(node, node.text)


def build_ast(source: str, file: str = "<script>") -> List[Any]:
    """Lexes, parses and transforms `source` into an executable AST."""
    return CrowTransformer(file).transform(parse(source, file))
