"""
alc-lisp Parser
Recursive-descent AST builder with Invalid-node recovery and tree-position diagnostics
"""

import sys
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from lexer import Lexer, Token, TokenKind, Position
from environment import run_with_headroom
from error_handling import AlcParseError


# A path of child indices from the root down to one node
TreePosition = List[int]


class NodeType:
    WORD = "Word"
    INVALID = "Invalid"
    EXPRESSION = "Expression"
    LIST = "List"
    STRING = "StringLiteral"
    NUMBER = "NumberLiteral"
    BOOLEAN = "BooleanLiteral"
    FUNCTION = "FunctionLiteral"


LEAF_TYPES = (NodeType.WORD, NodeType.INVALID, NodeType.STRING, NodeType.NUMBER, NodeType.BOOLEAN)
SEQUENCE_TYPES = (NodeType.EXPRESSION, NodeType.LIST)

_TYPE_NAMES = {
    NodeType.WORD: "word",
    NodeType.INVALID: "invalid",
    NodeType.EXPRESSION: "expression",
    NodeType.LIST: "list",
    NodeType.STRING: "string",
    NodeType.NUMBER: "number",
    NodeType.BOOLEAN: "boolean",
    NodeType.FUNCTION: "function",
}


@dataclass(frozen=True)
class Node:
    """AST node.

    Leaves carry their token. ``Expression`` and ``List`` carry children.
    ``FunctionLiteral`` carries the ``fn`` token and two children: the
    argument list and the body. ``implicit`` marks sequences the parser
    synthesised (the program root and wrapped function bodies).
    """
    type: str
    token: Optional[Token] = None
    children: List['Node'] = field(default_factory=list)
    implicit: bool = field(default=False, compare=False)

    @property
    def value(self) -> Optional[str]:
        return self.token.value if self.token else None

    @property
    def arguments(self) -> List['Node']:
        if self.type != NodeType.FUNCTION:
            raise AttributeError(f"{self.type} node has no arguments")
        return self.children[0].children

    @property
    def body(self) -> 'Node':
        if self.type != NodeType.FUNCTION:
            raise AttributeError(f"{self.type} node has no body")
        return self.children[1]

    def type_of(self) -> str:
        return _TYPE_NAMES[self.type]

    def node_at(self, position: TreePosition) -> 'Node':
        """Follow a tree position down from this node"""
        node = self
        for index in position:
            if node.type not in SEQUENCE_TYPES and node.type != NodeType.FUNCTION:
                raise AlcParseError(
                    f"trying to get node position {list(position)} from node of type {node.type}")
            if not 0 <= index < len(node.children):
                raise AlcParseError(f"invalid index of node {list(position)}")
            node = node.children[index]
        return node

    def last_char(self) -> Position:
        """End position of the last token under this node, (0, 0) when empty"""
        if self.type in LEAF_TYPES:
            return self.token.end
        if self.type == NodeType.FUNCTION:
            return self.body.last_char()
        if self.children:
            return self.children[-1].last_char()
        return Position(0, 0)

    def __str__(self) -> str:
        if self.type in LEAF_TYPES:
            return f"{self.type}({self.value})"
        if self.type == NodeType.FUNCTION:
            args = " ".join(arg.value for arg in self.arguments)
            return f"{self.type}([{args}], {self.body})"
        children_str = ", ".join(str(child) for child in self.children)
        return f"{self.type}([{children_str}])"


class Parser:
    """Builds a Node tree from a token list.

    Unknown tokens become ``Invalid`` nodes and their tree positions are
    recorded in ``errors()``; structural problems raise AlcParseError.
    """

    def __init__(self, tokens: Optional[List[Token]] = None, debug: bool = False):
        self.debug = debug
        # consumed from the end, so keep them reversed
        self.tokens: List[Token] = list(reversed(tokens or []))
        self.current_position: TreePosition = [0]
        self._errors: List[TreePosition] = []

    @classmethod
    def with_tokens(cls, tokens: List[Token], debug: bool = False) -> 'Parser':
        return cls(tokens, debug)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def errors(self) -> List[TreePosition]:
        return [list(p) for p in self._errors]

    def has_errors(self) -> bool:
        return bool(self._errors)

    def format_errors(self, root: Node) -> List[str]:
        reports = []
        for idx, position in enumerate(self._errors):
            node = root.node_at(position)
            where = f" at {node.token.start}" if node.token else ""
            reports.append(f"AST ERROR [{idx}]:{position}{where}\n{pretty_print_node(node).rstrip()}")
        return reports

    def print_errors(self, root: Node) -> None:
        for report in self.format_errors(root):
            print(report, file=sys.stderr)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self) -> Node:
        """Parse every remaining token into a synthetic root Expression"""
        try:
            nodes = run_with_headroom(self._parse_forms)
        except RecursionError:
            raise AlcParseError("expression nested too deeply") from None

        root = Node(NodeType.EXPRESSION, children=nodes, implicit=True)
        if self.debug:
            print(f"Parsed {len(nodes)} top-level expressions, {len(self._errors)} invalid tokens")
        return root

    def _parse_forms(self) -> List[Node]:
        nodes = []
        while self.tokens:
            if self._skip_comments():
                continue
            nodes.append(self._parse_expression())

        if self.tokens:
            raise AlcParseError(f"not all tokens were consumed: still missing {len(self.tokens)}")
        return nodes

    def _skip_comments(self) -> int:
        count = 0
        while self.tokens and self.tokens[-1].kind == TokenKind.COMMENT:
            self.tokens.pop()
            count += 1
        return count

    def _parse_expression(self) -> Node:
        if not self.tokens:
            raise AlcParseError("no expression")

        token = self.tokens.pop()
        kind = token.kind

        if kind == TokenKind.COMMENT:
            return self._parse_expression()

        if kind == TokenKind.LPAREN:
            if self._next_is_fn():
                node = self._parse_function(self.tokens.pop(), closer=TokenKind.RPAREN)
            else:
                node = Node(NodeType.EXPRESSION, children=self._parse_children(TokenKind.RPAREN, "expression"))
        elif kind == TokenKind.LSQUARE:
            node = Node(NodeType.LIST, children=self._parse_children(TokenKind.RSQUARE, "list"))
        elif kind in (TokenKind.RPAREN, TokenKind.RSQUARE):
            raise AlcParseError(f"trying to parse a {kind} {token.end}",
                                (token.start.line, token.start.col))
        elif kind == TokenKind.STRING:
            node = Node(NodeType.STRING, token)
        elif kind == TokenKind.NUMBER:
            node = Node(NodeType.NUMBER, token)
        elif kind == TokenKind.WORD:
            if token.value == "fn":
                node = self._parse_function(token)
            elif token.value in ("true", "false"):
                node = Node(NodeType.BOOLEAN, token)
            else:
                node = Node(NodeType.WORD, token)
        else:
            # Unknown and SingleQuote tokens are kept in place
            node = Node(NodeType.INVALID, token)

        if node.type == NodeType.INVALID:
            self._errors.append(list(self.current_position))

        self.current_position[-1] += 1
        return node

    def _parse_children(self, closer: str, label: str) -> List[Node]:
        children = []
        self.current_position.append(0)

        while self.tokens and self.tokens[-1].kind != closer:
            if self._skip_comments():
                continue
            children.append(self._parse_expression())

        self.current_position.pop()

        if not self.tokens:
            last = children[-1].last_char() if children else Position(0, 0)
            raise AlcParseError(f"unterminated {label} at {last}", (last.line, last.col))

        self.tokens.pop()
        return children

    def _next_is_fn(self) -> bool:
        return bool(self.tokens) and self.tokens[-1].kind == TokenKind.WORD and self.tokens[-1].value == "fn"

    def _parse_function(self, fn_token: Token, closer: Optional[str] = None) -> Node:
        """Parse ``fn args body`` or, inside parentheses, ``(fn args body...)``.

        The parenthesized form takes every remaining form up to ``closer``
        as its body sequence.
        """
        # children of a function literal are addressed as [arguments, body]
        self.current_position.append(0)

        try:
            arguments = self._parse_expression()
        except AlcParseError as e:
            raise e.with_context("invalid function arguments") from e

        if arguments.type not in SEQUENCE_TYPES:
            raise AlcParseError("invalid function declaration: invalid arguments",
                                (fn_token.start.line, fn_token.start.col))
        if any(arg.type != NodeType.WORD for arg in arguments.children):
            raise AlcParseError("invalid function arguments: arguments should only be identifiers",
                                (fn_token.start.line, fn_token.start.col))

        if closer is not None:
            forms = self._parse_children(closer, "expression")
            if not forms:
                raise AlcParseError("invalid function body: no expression",
                                    (fn_token.start.line, fn_token.start.col))
            body = Node(NodeType.EXPRESSION, children=forms, implicit=True)
            self.current_position.pop()
            return Node(NodeType.FUNCTION, fn_token, [arguments, body])

        body_path = list(self.current_position)
        first_error = len(self._errors)
        try:
            body = self._parse_expression()
        except AlcParseError as e:
            raise e.with_context("invalid function body") from e

        if body.type != NodeType.EXPRESSION:
            body = Node(NodeType.EXPRESSION, children=[body], implicit=True)
            # errors found inside the body now sit one level deeper
            depth = len(body_path)
            for i in range(first_error, len(self._errors)):
                path = self._errors[i]
                self._errors[i] = path[:depth] + [0] + path[depth:]

        self.current_position.pop()
        return Node(NodeType.FUNCTION, fn_token, [arguments, body])


# ============================================================================
# FRONT END
# ============================================================================

class SourceParser:
    """Lexer and Parser combined, the way hosts usually want them"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.last_parser: Optional[Parser] = None

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        return Lexer(text, filename).parse()

    def parse_string(self, text: str, filename: str = "<input>") -> Node:
        tokens = self.tokenize(text, filename)
        if self.debug:
            print(f"Lexed {len(tokens)} tokens from {filename}")
        parser = Parser.with_tokens(tokens, self.debug)
        self.last_parser = parser
        root = parser.parse()
        if self.debug and parser.has_errors():
            parser.print_errors(root)
        return root

    def parse_file(self, filepath: str) -> Node:
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise AlcParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise AlcParseError(f"Cannot decode file {filepath}: {e}")
        return self.parse_string(content, filepath)

    def errors(self) -> List[TreePosition]:
        return self.last_parser.errors() if self.last_parser else []


def create_parser(debug: bool = False) -> SourceParser:
    """Create an alc-lisp parser"""
    return SourceParser(debug=debug)


def create_debug_parser() -> SourceParser:
    """Create an alc-lisp parser with debug enabled"""
    return SourceParser(debug=True)


def parse_source(text: str) -> Node:
    """Lex and parse in one step"""
    return create_parser().parse_string(text)


# Utility functions for working with the AST
def find_nodes_by_type(root: Node, node_type: str) -> List[Node]:
    """Find all nodes of a specific type"""
    result = []

    def search(node: Node):
        if node.type == node_type:
            result.append(node)
        for child in node.children:
            search(child)

    search(root)
    return result


def pretty_print_node(node: Node, indent: int = 0) -> str:
    """Pretty print a node for debugging"""
    result = "  " * indent + f"{node.type}"
    if node.type in LEAF_TYPES:
        result += f"({node.value!r})"
    result += "\n"

    for child in node.children:
        result += pretty_print_node(child, indent + 1)

    return result


def node_to_dict(node: Node) -> Dict[str, Any]:
    """Convert a node to a JSON-friendly dictionary"""
    result: Dict[str, Any] = {"type": node.type}
    if node.token is not None:
        result["token"] = {
            "value": node.token.value,
            "kind": node.token.kind,
            "start": {"line": node.token.start.line, "col": node.token.start.col},
            "end": {"line": node.token.end.line, "col": node.token.end.col},
        }
    if node.type == NodeType.FUNCTION:
        result["arguments"] = [node_to_dict(arg) for arg in node.arguments]
        result["body"] = node_to_dict(node.body)
    elif node.type in SEQUENCE_TYPES:
        result["children"] = [node_to_dict(child) for child in node.children]
    return result
