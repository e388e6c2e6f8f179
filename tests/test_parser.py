import json

import pytest
import yaml

from crow.crow_datatypes import Token, ParseError
from crow.crow_parser import parse

# =================================================================
# Setup and Helper Functions
# =================================================================

def clean_ast(node):
    """
    Reduces a raw token tree for stable comparison.
    - Lists stay lists.
    - Tokens keep only their 'tag' (token kind) and 'text'.
    """
    if isinstance(node, list):
        return [clean_ast(n) for n in node]
    assert isinstance(node, Token)
    return {'tag': node.kind.name, 'text': node.text}


def count_lists(node):
    if isinstance(node, list):
        return 1 + sum(count_lists(n) for n in node)
    return 0


def _run_structural_test(test_id, source_and_expected_yaml):
    """Helper to run a single structural parsing test."""
    try:
        source_code, expected_yaml = source_and_expected_yaml.strip().split('---', 1)
        source_code = source_code.strip()
        expected_ast = yaml.safe_load(expected_yaml)
    except (ValueError, yaml.YAMLError) as e:
        pytest.fail(f"Invalid test case format for '{test_id}': {e}", pytrace=False)

    try:
        result_ast = parse(source_code)
    except ParseError as e:
        pytest.fail(f"Parsing failed for '{test_id}':\n{e}", pytrace=False)

    cleaned_result_ast = clean_ast(result_ast)

    if cleaned_result_ast != expected_ast:
        print("\n" + "="*20 + " AST Diff " + "="*20)
        print(f"Test ID: {test_id}")
        print("----- Source Code -----")
        print(source_code)
        print("----- Actual (Cleaned) -----")
        print(json.dumps(cleaned_result_ast, indent=2))
        print("----- Expected -----")
        print(json.dumps(expected_ast, indent=2))
        print("="*50)

    assert cleaned_result_ast == expected_ast

# =================================================================
# Test Cases for the Token Tree
# =================================================================

def test_empty_program():
    case = """

---
[]
"""
    _run_structural_test("empty_program", case)


def test_top_level_atoms():
    case = """
"test" 22
---
- {tag: STRING, text: '"test"'}
- {tag: NUMBER, text: "22"}
"""
    _run_structural_test("top_level_atoms", case)


def test_flat_list():
    case = """
<+ 1 2 3>
---
- - {tag: ARITHMETIC, text: "+"}
  - {tag: NUMBER, text: "1"}
  - {tag: NUMBER, text: "2"}
  - {tag: NUMBER, text: "3"}
"""
    _run_structural_test("flat_list", case)


def test_empty_list():
    case = """
<>
---
- []
"""
    _run_structural_test("empty_list", case)


def test_nested_lists():
    case = """
<func f <a b> <+ a b>>
---
- - {tag: OPERATOR, text: func}
  - {tag: NAME, text: f}
  - - {tag: NAME, text: a}
    - {tag: NAME, text: b}
  - - {tag: ARITHMETIC, text: "+"}
    - {tag: NAME, text: a}
    - {tag: NAME, text: b}
"""
    _run_structural_test("nested_lists", case)


def test_comments_are_kept():
    case = """
<let x 1> # trailing
---
- - {tag: OPERATOR, text: let}
  - {tag: NAME, text: x}
  - {tag: NUMBER, text: "1"}
- {tag: COMMENT, text: "# trailing"}
"""
    _run_structural_test("comments_are_kept", case)


def test_sibling_lists():
    case = """
<a> <b <c>>
---
- - {tag: NAME, text: a}
- - {tag: NAME, text: b}
  - - {tag: NAME, text: c}
"""
    _run_structural_test("sibling_lists", case)


def test_brackets_inside_strings_are_text():
    case = """
<emit "<not a list>">
---
- - {tag: NAME, text: emit}
  - {tag: STRING, text: '"<not a list>"'}
"""
    _run_structural_test("brackets_inside_strings", case)


def test_dotted_names_and_sys_paths():
    case = """
<sys "math.sqrt" <16>>
---
- - {tag: OPERATOR, text: sys}
  - {tag: STRING, text: '"math.sqrt"'}
  - - {tag: NUMBER, text: "16"}
"""
    _run_structural_test("sys_paths", case)

# =================================================================
# Bracket Matching
# =================================================================

@pytest.mark.parametrize("source_code, pairs", [
    ("", 0),
    ("1 2 3", 0),
    ("<>", 1),
    ("<<><>>", 3),
    ("<a <b <c <d>>>> <e>", 5),
    ('<"<not a list>" x>', 1),
    ("<# comment with < inside\n y>", 1),
])
def test_list_count_equals_bracket_pairs(source_code, pairs):
    tree = parse(source_code)
    assert sum(count_lists(n) for n in tree) == pairs


@pytest.mark.parametrize("source_code", ["<", "<a <b>", "<<>", "<a> <b"])
def test_unterminated_list_fails(source_code):
    with pytest.raises(ParseError) as ei:
        parse(source_code)
    assert "never closed" in ei.value.message


@pytest.mark.parametrize("source_code", [">", "<a>>", "a >", "<<b>>>"])
def test_extra_closing_bracket_fails(source_code):
    with pytest.raises(ParseError) as ei:
        parse(source_code)
    assert "without a matching" in ei.value.message


def test_unterminated_error_points_at_opening_bracket():
    with pytest.raises(ParseError) as ei:
        parse("<a>\n\n<b\n c", "prog.cr")
    assert ei.value.line == 3
    assert ei.value.file == "prog.cr"


def test_deep_nesting_parses_without_recursion():
    depth = 5000
    tree = parse("<" * depth + ">" * depth)
    for _ in range(depth - 1):
        assert len(tree) == 1
        tree = tree[0]
    assert tree == [[]]
