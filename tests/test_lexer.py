import pytest

from crow.crow_datatypes import TokenKind, ParseError
from crow.crow_lexer import tokenize, get_parser


def kinds(source):
    return [(t.kind, t.text) for t in tokenize(source)]


def test_basic_list_tokens():
    assert kinds('<+ 1 2>') == [
        (TokenKind.START_LIST, '<'),
        (TokenKind.ARITHMETIC, '+'),
        (TokenKind.NUMBER, '1'),
        (TokenKind.NUMBER, '2'),
        (TokenKind.END_LIST, '>'),
    ]


@pytest.mark.parametrize("source, expected", [
    ("0", TokenKind.NUMBER),
    ("42", TokenKind.NUMBER),
    ("3.25", TokenKind.NUMBER),
    ('"hi there"', TokenKind.STRING),
    ('"esc \\" quote"', TokenKind.STRING),
    ("# a comment", TokenKind.COMMENT),
    ("let", TokenKind.OPERATOR),
    ("reduce", TokenKind.OPERATOR),
    ("==", TokenKind.ARITHMETIC),
    ("!=", TokenKind.ARITHMETIC),
    ("!", TokenKind.ARITHMETIC),
    ("foo", TokenKind.NAME),
    ("a.b.c", TokenKind.NAME),
])
def test_single_atom_kind(source, expected):
    toks = tokenize(source)
    assert len(toks) == 1
    assert toks[0].kind is expected
    assert toks[0].text == source


def test_keywords_match_whole_words_only():
    # Identifiers that merely start with a keyword are names.
    assert kinds("iffy lets func_name import.x") == [
        (TokenKind.NAME, "iffy"),
        (TokenKind.NAME, "lets"),
        (TokenKind.NAME, "func_name"),
        (TokenKind.NAME, "import.x"),
    ]


def test_number_followed_by_letters_is_not_a_number():
    with pytest.raises(ParseError):
        tokenize("12abc")


def test_comment_stops_at_closing_bracket_and_newline():
    assert kinds("<x # note> y # rest\nz") == [
        (TokenKind.START_LIST, "<"),
        (TokenKind.NAME, "x"),
        (TokenKind.COMMENT, "# note"),
        (TokenKind.END_LIST, ">"),
        (TokenKind.NAME, "y"),
        (TokenKind.COMMENT, "# rest"),
        (TokenKind.NAME, "z"),
    ]


def test_line_numbers_track_newlines_including_multiline_strings():
    toks = tokenize('a\n"two\nlines"\n  b', "mod.cr")
    assert [(t.text, t.line) for t in toks] == [
        ("a", 1),
        ('"two\nlines"', 2),
        ("b", 4),
    ]
    assert all(t.file == "mod.cr" for t in toks)


def test_unrecognised_input_raises_parse_error_with_location():
    with pytest.raises(ParseError) as ei:
        tokenize("<a\n @oops>", "bad.cr")
    assert ei.value.line == 2
    assert ei.value.file == "bad.cr"
    assert "@oops" in ei.value.message


def test_priority_order_and_bracket_tokens():
    # `!=` is tried before `!`.
    assert kinds("<!= !x>") == [
        (TokenKind.START_LIST, "<"),
        (TokenKind.ARITHMETIC, "!="),
        (TokenKind.ARITHMETIC, "!"),
        (TokenKind.NAME, "x"),
        (TokenKind.END_LIST, ">"),
    ]


def test_string_keeps_tabs_and_escapes_verbatim():
    toks = tokenize('"a\tb \\" c"')
    assert [t.kind for t in toks] == [TokenKind.STRING]
    assert toks[0].text == '"a\tb \\" c"'


def test_grammar_parser_is_shared():
    assert get_parser() is get_parser()


def test_empty_and_whitespace_only_sources():
    assert tokenize("") == []
    assert tokenize("  \n\t ") == []
