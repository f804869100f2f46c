import threading
from typing import Iterator, List, Optional

import esprima
import tree_sitter as ts
import tree_sitter_javascript as tsjs

from jsassist.parsers import (
    AbstractCodeParser, AbstractTokenizer, CodeParserRegistry,
    ParseError, SyntaxTree, Token, TokenizeError,
)
from jsassist.models import ProgrammingLanguage
from jsassist.logger import logger


JS_LANGUAGE = ts.Language(tsjs.language())
_local = threading.local()

# Point = (row, byte column), both 0-based, as reported by tree-sitter.
Point = tuple[int, int]

FUNCTION_NODES = frozenset({
    "function_declaration",
    "function_expression",
    "function",
    "generator_function_declaration",
    "generator_function",
    "arrow_function",
    "method_definition",
})
CLASS_NODES = frozenset({"class_declaration", "class"})
DECLARATION_NODES = frozenset({"variable_declaration", "lexical_declaration"})
ASSIGNMENT_NODES = frozenset({"assignment_expression", "augmented_assignment_expression"})
LOOP_NODES = frozenset({
    "for_statement",
    "for_in_statement",
    "while_statement",
    "do_statement",
    "labeled_statement",
    "with_statement",
})

# Literal node type -> built-in constructor its values are instances of.
LITERAL_CONSTRUCTORS = {
    "object": "Object",
    "array": "Array",
    "regex": "RegExp",
    "number": "Number",
    "string": "String",
    "template_string": "String",
    "true": "Boolean",
    "false": "Boolean",
}


def _get_parser() -> ts.Parser:
    # tree-sitter parsers are not safe to share between threads.
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = ts.Parser(JS_LANGUAGE)
        _local.parser = parser
    return parser


# --------------------------------------------------------------------------- #
# Node helpers
# --------------------------------------------------------------------------- #
def get_node_text(node: Optional[ts.Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf8", errors="replace")


def start_point(node: ts.Node) -> Point:
    return (node.start_point[0], node.start_point[1])


def end_point(node: ts.Node) -> Point:
    return (node.end_point[0], node.end_point[1])


def contains_point(node: ts.Node, point: Point) -> bool:
    return start_point(node) <= point <= end_point(node)


def significant_children(node: Optional[ts.Node]) -> List[ts.Node]:
    """Named children without comments."""
    if node is None:
        return []
    return [ch for ch in node.named_children if ch.type != "comment"]


def first_significant_child(node: Optional[ts.Node]) -> Optional[ts.Node]:
    children = significant_children(node)
    return children[0] if children else None


def unwrap_parentheses(node: Optional[ts.Node]) -> Optional[ts.Node]:
    while node is not None and node.type == "parenthesized_expression":
        node = first_significant_child(node)
    return node


def property_key_name(key: Optional[ts.Node]) -> Optional[str]:
    """Name of an object literal key; None for computed keys."""
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier", "number",
                    "shorthand_property_identifier", "private_property_identifier"):
        return get_node_text(key)
    if key.type == "string":
        return "".join(get_node_text(ch) for ch in key.named_children
                       if ch.type in ("string_fragment", "escape_sequence"))
    return None


def parameter_names(fn: ts.Node) -> List[str]:
    """Plain parameter names of a function node, in declaration order."""
    single = fn.child_by_field_name("parameter")
    if single is not None:
        return [get_node_text(single)] if single.type == "identifier" else []
    params = fn.child_by_field_name("parameters")
    names: List[str] = []
    for param in significant_children(params):
        if param.type == "assignment_pattern":
            param = param.child_by_field_name("left")
        if param is not None and param.type == "identifier":
            names.append(get_node_text(param))
        else:
            # Keep indices aligned with call arguments.
            names.append("")
    return names


def iter_error_nodes(node: ts.Node) -> Iterator[ts.Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            yield current
            continue
        if current.has_error:
            stack.extend(reversed(current.children))


# --------------------------------------------------------------------------- #
# Parser and tokenizer
# --------------------------------------------------------------------------- #
class JavaScriptCodeParser(AbstractCodeParser):
    language = ProgrammingLanguage.JAVASCRIPT

    def parse(self, source: str) -> SyntaxTree:
        tree = _get_parser().parse(source.encode("utf8"))
        root = tree.root_node
        if root.has_error:
            err = next(iter_error_nodes(root), root)
            line, column = err.start_point[0], err.start_point[1]
            logger.debug("JS parser: syntax error", line=line + 1, column=column, node_type=err.type)
            raise ParseError(f"syntax error at {line + 1}:{column}", line=line, column=column)
        return SyntaxTree(language=self.language, source=source, root=tree)


class JavaScriptTokenizer(AbstractTokenizer):
    language = ProgrammingLanguage.JAVASCRIPT

    def tokenize(self, source: str) -> List[Token]:
        try:
            entries = esprima.tokenize(source, {"loc": True})
        except Exception as exc:
            raise TokenizeError(str(exc)) from exc

        tokens: List[Token] = []
        for entry in entries:
            loc = entry.loc
            tokens.append(
                Token(
                    type=entry.type,
                    value=str(entry.value),
                    line=loc.start.line - 1,
                    start=loc.start.column,
                    end=loc.end.column,
                )
            )
        return tokens


CodeParserRegistry.register_parser(ProgrammingLanguage.JAVASCRIPT, JavaScriptCodeParser)
CodeParserRegistry.register_tokenizer(ProgrammingLanguage.JAVASCRIPT, JavaScriptTokenizer)
