import pytest

from crow.crow_datatypes import Token, TokenKind
from crow.crow_transformer import build_ast, unescape, parse_number


@pytest.mark.parametrize("body, expected", [
    (r"plain", "plain"),
    (r"a\nb", "a\nb"),
    (r"tab\there", "tab\there"),
    (r"\"quoted\"", '"quoted"'),
    (r"back\\slash", "back\\slash"),
    (r"\u0041BC", "ABC"),
    (r"\q", "q"),
])
def test_unescape(body, expected):
    assert unescape(body) == expected


def test_parse_number():
    assert parse_number("22") == 22
    assert isinstance(parse_number("22"), int)
    assert parse_number("2.5") == 2.5
    assert parse_number("0") == 0


def test_literals_get_typed_values():
    ast = build_ast('<array 1 2.5 "a\\nb" x>', "t.cr")
    items = ast[0]
    assert [t.kind for t in items] == [
        TokenKind.OPERATOR, TokenKind.NUMBER, TokenKind.NUMBER, TokenKind.STRING, TokenKind.NAME,
    ]
    assert items[1].value == 1
    assert items[2].value == 2.5
    assert items[3].value == "a\nb"
    assert items[3].text == '"a\\nb"'
    assert items[4].value == "x"


def test_every_token_is_stamped_with_the_file():
    ast = build_ast("<f <g 1>>\n# note", "lib/mod.cr")

    def walk(node):
        if isinstance(node, list):
            for n in node:
                yield from walk(n)
        else:
            yield node

    toks = list(walk(ast))
    assert toks
    assert all(isinstance(t, Token) and t.file == "lib/mod.cr" for t in toks)
    assert toks[-1].kind is TokenKind.COMMENT
    assert toks[-1].line == 2


def test_default_file_name():
    ast = build_ast("x")
    assert ast[0].file == "<script>"


def test_deeply_nested_source_builds_without_recursion():
    depth = 3000
    ast = build_ast("<array " * depth + "1" + ">" * depth)
    node = ast
    for _ in range(depth):
        assert len(node) == 1
        node = node[0]
        assert node[0].text == "array"
        node = node[1:]
    assert node[0].value == 1
