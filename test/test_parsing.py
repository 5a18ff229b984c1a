"""
Parser tests for alc-lisp
Tree shape, tree positions, recovery and structural errors
"""

import pytest
from lexer import Position, tokenize
from parsing import (
    NodeType, Parser, create_parser, parse_source,
    find_nodes_by_type, node_to_dict, pretty_print_node
)
from error_handling import AlcParseError


def parse_with_parser(source):
    parser = Parser.with_tokens(tokenize(source))
    return parser, parser.parse()


class TestTreeShape:
    """Node types produced for each construct"""

    def test_root_is_implicit_expression(self):
        root = parse_source("1 2")
        assert root.type == NodeType.EXPRESSION
        assert root.implicit
        assert [child.type for child in root.children] == [NodeType.NUMBER, NodeType.NUMBER]

    def test_empty_source(self):
        root = parse_source("")
        assert root.children == []
        assert root.last_char() == Position(0, 0)

    def test_call_expression(self):
        root = parse_source("(+ 1 2)")
        call = root.children[0]
        assert call.type == NodeType.EXPRESSION
        assert not call.implicit
        assert call.token is None
        assert [child.type for child in call.children] == [
            NodeType.WORD, NodeType.NUMBER, NodeType.NUMBER]

    def test_list_literal(self):
        node = parse_source('[1 "a" x]').children[0]
        assert node.type == NodeType.LIST
        assert [child.type for child in node.children] == [
            NodeType.NUMBER, NodeType.STRING, NodeType.WORD]

    def test_booleans(self):
        root = parse_source("true false truthy")
        assert [child.type for child in root.children] == [
            NodeType.BOOLEAN, NodeType.BOOLEAN, NodeType.WORD]

    def test_function_literal(self):
        fn = parse_source("(fn [a b] (+ a b))").children[0]
        assert fn.type == NodeType.FUNCTION
        assert [arg.value for arg in fn.arguments] == ["a", "b"]
        assert fn.body.type == NodeType.EXPRESSION
        assert fn.body.implicit
        assert fn.body.children[0].type == NodeType.EXPRESSION

    def test_function_arguments_in_parentheses(self):
        fn = parse_source("(fn (x) x)").children[0]
        assert [arg.value for arg in fn.arguments] == ["x"]

    def test_parenthesized_body_is_a_sequence(self):
        fn = parse_source("(fn (x) (define x 10) x)").children[0]
        assert [child.type for child in fn.body.children] == [NodeType.EXPRESSION, NodeType.WORD]

    def test_bare_fn_keeps_expression_body(self):
        fn = parse_source("fn [a] (+ a 1)").children[0]
        assert fn.type == NodeType.FUNCTION
        assert not fn.body.implicit
        assert fn.body.children[0].value == "+"

    def test_non_expression_body_is_wrapped(self):
        fn = parse_source("fn [x] x").children[0]
        assert fn.body.type == NodeType.EXPRESSION
        assert fn.body.implicit
        assert fn.body.children[0].value == "x"

    def test_fn_inside_call(self):
        call = parse_source("(def f fn [x] x)").children[0]
        assert [child.type for child in call.children] == [
            NodeType.WORD, NodeType.WORD, NodeType.FUNCTION]

    def test_comments_are_skipped(self):
        root = parse_source("; header\n(a ; inline\n b)\n; trailer")
        call = root.children[0]
        assert len(root.children) == 1
        assert [child.value for child in call.children] == ["a", "b"]

    def test_type_of(self):
        root = parse_source('(fn [] 1) "s" [1]')
        assert root.type_of() == "expression"
        assert root.children[1].type_of() == "string"
        assert root.children[2].type_of() == "list"

    def test_node_equality_is_structural(self):
        assert parse_source("(a 1)") == parse_source("(a 1)")
        assert parse_source("(a 1)") != parse_source("(a 2)")


class TestTreePositions:
    """Paths of child indices and node lookup"""

    def test_node_at(self):
        root = parse_source("(a (b c))")
        assert root.node_at([0, 1, 1]).value == "c"
        assert root.node_at([]) is root

    def test_node_at_out_of_range(self):
        root = parse_source("(a)")
        with pytest.raises(AlcParseError, match="invalid index of node"):
            root.node_at([0, 5])

    def test_node_at_into_leaf(self):
        root = parse_source("(a)")
        with pytest.raises(AlcParseError, match="from node of type Word"):
            root.node_at([0, 0, 0])

    def test_last_char(self):
        root = parse_source("(a\n  bcd)")
        assert root.last_char() == Position(2, 6)

    def test_last_char_of_function_uses_body(self):
        fn = parse_source("(fn [x] xyz)").children[0]
        assert fn.last_char() == Position(1, 12)


class TestRecovery:
    """Invalid tokens become Invalid nodes with recorded positions"""

    def test_unknown_token_recorded(self):
        parser, root = parse_with_parser("(a @ b)")
        assert parser.has_errors()
        assert parser.errors() == [[0, 1]]
        assert root.node_at([0, 1]).type == NodeType.INVALID

    def test_single_quote_is_invalid(self):
        parser, root = parse_with_parser("'x")
        assert parser.errors() == [[0]]
        assert root.children[1].type == NodeType.WORD

    def test_every_error_resolves_to_invalid(self):
        parser, root = parse_with_parser("@ [1 # (2 $)] (fn [a] (b %))")
        assert len(parser.errors()) == 4
        for position in parser.errors():
            assert root.node_at(position).type == NodeType.INVALID

    @pytest.mark.parametrize("source", ["(fn [x] @)", "fn [x] @"])
    def test_function_body_error_position(self, source):
        parser, root = parse_with_parser(source)
        # fn literal 0, body 1, first body form 0
        assert parser.errors() == [[0, 1, 0]]
        assert root.node_at([0, 1, 0]).type == NodeType.INVALID

    def test_format_errors(self):
        parser, root = parse_with_parser("(a @)")
        reports = parser.format_errors(root)
        assert len(reports) == 1
        assert reports[0].startswith("AST ERROR [0]:[0, 1] at 1:4")
        assert "Invalid('@')" in reports[0]

    def test_print_errors_goes_to_stderr(self, capsys):
        parser, root = parse_with_parser("#")
        parser.print_errors(root)
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "AST ERROR [0]" in captured.err

    def test_clean_source_has_no_errors(self):
        parser, _ = parse_with_parser("(def x [1 2 3])")
        assert not parser.has_errors()
        assert parser.errors() == []


class TestStructuralErrors:
    """Errors that abort the parse"""

    def test_unexpected_closer(self):
        with pytest.raises(AlcParseError, match="trying to parse a RParen"):
            parse_source(")")

    def test_unexpected_square_closer(self):
        with pytest.raises(AlcParseError, match="trying to parse a RSquare"):
            parse_source("(a ])")

    def test_unterminated_expression(self):
        with pytest.raises(AlcParseError, match="unterminated expression"):
            parse_source("(a (b c)")

    def test_unterminated_list(self):
        with pytest.raises(AlcParseError, match="unterminated list"):
            parse_source("[1 2")

    def test_deep_nesting_parses(self):
        root = parse_source("(" * 3000 + ")" * 3000)
        assert root.children[0].type == NodeType.EXPRESSION

    def test_runaway_nesting(self):
        with pytest.raises(AlcParseError, match="expression nested too deeply"):
            parse_source("[" * 40000 + "]" * 40000)

    def test_fn_without_arguments(self):
        with pytest.raises(AlcParseError, match="invalid function declaration: invalid arguments"):
            parse_source("(fn x x)")

    def test_fn_with_non_word_arguments(self):
        with pytest.raises(AlcParseError, match="arguments should only be identifiers"):
            parse_source("(fn [1 b] b)")

    def test_fn_at_end_of_input(self):
        with pytest.raises(AlcParseError) as exc_info:
            parse_source("(fn")
        assert "invalid function arguments" in str(exc_info.value)
        assert exc_info.value.root_message == "no expression"

    def test_parenthesized_fn_missing_body(self):
        with pytest.raises(AlcParseError, match="invalid function body: no expression"):
            parse_source("(fn [x])")

    def test_unterminated_function_literal(self):
        with pytest.raises(AlcParseError, match="unterminated expression"):
            parse_source("(fn [x] x")

    def test_fn_missing_body(self):
        with pytest.raises(AlcParseError) as exc_info:
            parse_source("fn [x]")
        assert str(exc_info.value).startswith("invalid function body")


class TestHelpers:
    """Front end and tree utilities"""

    def test_source_parser_tracks_errors(self):
        parser = create_parser()
        parser.parse_string("(a @)")
        assert parser.errors() == [[0, 1]]

    def test_parse_file(self, tmp_path):
        path = tmp_path / "prog.alc"
        path.write_text("(print 1)", encoding="utf-8")
        root = create_parser().parse_file(str(path))
        assert root.children[0].children[0].value == "print"

    def test_parse_missing_file(self, tmp_path):
        with pytest.raises(AlcParseError, match="File not found"):
            create_parser().parse_file(str(tmp_path / "missing.alc"))

    def test_find_nodes_by_type(self):
        root = parse_source("(a 1 [2 (b 3)])")
        numbers = find_nodes_by_type(root, NodeType.NUMBER)
        assert [node.value for node in numbers] == ["1", "2", "3"]

    def test_pretty_print(self):
        text = pretty_print_node(parse_source("(a 1)"))
        assert text.splitlines() == [
            "Expression",
            "  Expression",
            "    Word('a')",
            "    NumberLiteral('1')",
        ]

    def test_node_to_dict_function(self):
        data = node_to_dict(parse_source("(fn [x] x)").children[0])
        assert data["type"] == NodeType.FUNCTION
        assert data["token"]["value"] == "fn"
        assert data["arguments"][0]["token"]["value"] == "x"
        assert data["body"]["type"] == NodeType.EXPRESSION

    def test_node_str(self):
        assert str(parse_source("(a [1])").children[0]) == \
            "Expression([Word(a), List([NumberLiteral(1)])])"
