"""
Scope walker: collect the symbols visible at the caret into a Type Store.

The walk is iterative. Every stack frame is an iterator over sibling nodes
and the scope depth they live at; a node whose body holds the caret pushes a
frame for its children. Siblings are always visited, so symbols declared
after the caret are known as well. Without a caret every block is entered,
except the bodies of nested non-arrow functions and classes, which have a
`this` of their own.
"""
from typing import Iterator, List, Optional, Sequence, Tuple

import tree_sitter as ts

from jsassist.helpers import caret_to_point
from jsassist.inference import TypeInference
from jsassist.lang.javascript import (
    ASSIGNMENT_NODES, CLASS_NODES, DECLARATION_NODES, FUNCTION_NODES, LOOP_NODES,
    Point, contains_point, first_significant_child, get_node_text, parameter_names,
    significant_children, unwrap_parentheses,
)
from jsassist.logger import logger
from jsassist.models import Caret
from jsassist.parsers import SyntaxTree
from jsassist.settings import CompleterSettings
from jsassist.typestore import FUNCTION_TYPE, TypeStore

Frame = Tuple[Iterator[ts.Node], int]

# Wrappers whose first child is what the walker looks at.
_TRANSPARENT_NODES = frozenset({
    "expression_statement",
    "return_statement",
    "parenthesized_expression",
    "else_clause",
    "await_expression",
    "spread_element",
})


def _frame(nodes: Sequence[Optional[ts.Node]], depth: int) -> Frame:
    return iter([n for n in nodes if n is not None and n.type != "comment"]), depth


def _reaches(node: ts.Node, point: Optional[Point]) -> bool:
    return point is None or contains_point(node, point)


class StaticAnalyzer:
    """
    Builds the Type Store of a syntax tree as seen from a caret.

    Symbol weights are the depth of the scope they are declared in, so that
    inner symbols rank above outer ones.
    """

    def __init__(self, settings: Optional[CompleterSettings] = None) -> None:
        self.settings = settings or CompleterSettings()
        self.root = TypeStore()
        self.inference = TypeInference(self)
        self._steps = 0
        self._capped = False

    def analyze(self, tree: SyntaxTree, caret: Caret) -> TypeStore:
        """Return the global Type Store of *tree* with the caret at *caret*."""
        self.root = TypeStore()
        self.inference.reset()
        self._steps = 0
        self._capped = False

        point = caret_to_point(tree.source, caret)
        program = tree.root.root_node
        self.analyze_scope(significant_children(program), point, self.root)
        logger.debug(
            "Static analysis done",
            symbols=len(self.root.properties),
            steps=self._steps,
            capped=self._capped,
        )
        return self.root

    def analyze_scope(
        self,
        nodes: Sequence[ts.Node],
        point: Optional[Point],
        store: Optional[TypeStore] = None,
        depth: int = 0,
    ) -> TypeStore:
        """
        Walk *nodes* and register what they declare into *store*. Reentrant:
        type inference runs sub-walks over function bodies.
        """
        if store is None:
            store = TypeStore()

        stack: List[Frame] = [_frame(nodes, depth)]
        while stack:
            siblings, level = stack[-1]
            node = next(siblings, None)
            if node is None:
                stack.pop()
                continue

            self._steps += 1
            if self._steps > self.settings.max_walk_steps:
                if not self._capped:
                    logger.warning("Scope walk capped", max_walk_steps=self.settings.max_walk_steps)
                    self._capped = True
                break

            nested = self._visit(node, point, store, level)
            if nested is not None:
                stack.append(nested)
        return store

    # ------------------------------------------------------------------ #
    # Node handling
    # ------------------------------------------------------------------ #
    def _unwrap(self, node: ts.Node, store: TypeStore, depth: int) -> Tuple[Optional[ts.Node], bool]:
        """
        Peel statements, declarators and assignments off *node*, registering
        the symbols they bind. Returns the inner expression and whether it was
        the value of an assignment.
        """
        assigned = False
        current: Optional[ts.Node] = node
        while current is not None:
            kind = current.type
            if kind in _TRANSPARENT_NODES:
                current = first_significant_child(current)
            elif kind == "export_statement":
                current = (current.child_by_field_name("declaration")
                           or current.child_by_field_name("value"))
            elif kind == "variable_declarator":
                name = current.child_by_field_name("name")
                value = current.child_by_field_name("value")
                if name is not None and name.type == "identifier":
                    self.inference.type_from_assignment(store, [get_node_text(name)], value, depth)
                    assigned = True
                current = value
            elif kind in ASSIGNMENT_NODES:
                right = current.child_by_field_name("right")
                path = self.inference.assignment_path(current.child_by_field_name("left"))
                if path:
                    self.inference.type_from_assignment(store, path, right, depth)
                    assigned = True
                current = right
            elif kind == "pair":
                current = current.child_by_field_name("value")
                assigned = True
            else:
                break
        return current, assigned

    def _visit(self, node: ts.Node, point: Optional[Point], store: TypeStore, depth: int) -> Optional[Frame]:
        inner, assigned = self._unwrap(node, store, depth)
        if inner is None:
            return None
        kind = inner.type

        if kind in DECLARATION_NODES:
            return _frame(significant_children(inner), depth)

        if kind in CLASS_NODES:
            return self._visit_class(inner, point, store, depth)

        fn: Optional[ts.Node] = None
        if kind in FUNCTION_NODES:
            fn = inner
        elif kind == "call_expression":
            callee = unwrap_parentheses(inner.child_by_field_name("function"))
            if callee is not None and callee.type in FUNCTION_NODES:
                fn = callee
            elif not assigned:
                self.inference.type_from_call(store, inner, depth)
        elif kind == "new_expression" and not assigned:
            self.inference.type_from_new(store, inner, depth)

        if fn is not None:
            nested = self._visit_function(fn, point, store, depth)
            if nested is not None or fn is inner:
                return nested

        if not _reaches(inner, point):
            return None
        return self._nested_frame(inner, point, store, depth)

    def _visit_function(self, fn: ts.Node, point: Optional[Point], store: TypeStore, depth: int) -> Optional[Frame]:
        name = fn.child_by_field_name("name")
        # Methods are registered by their object or class.
        if name is not None and name.type == "identifier" and fn.type != "method_definition":
            target = store.add_property(get_node_text(name), depth)
            target.add_type(FUNCTION_TYPE)
            target.merge(self.inference.function_shape(fn))

        body = fn.child_by_field_name("body")
        if body is None:
            return None
        if point is None:
            # Arrow functions share `this` with the enclosing function.
            if fn.type != "arrow_function":
                return None
        elif not contains_point(body, point):
            return None
        for param in parameter_names(fn):
            if param:
                store.add_property(param, depth + 1)
        if body.type == "statement_block":
            return _frame(significant_children(body), depth + 1)
        return _frame([body], depth + 1)

    def _visit_class(self, cls: ts.Node, point: Optional[Point], store: TypeStore, depth: int) -> Optional[Frame]:
        name = cls.child_by_field_name("name")
        if name is not None:
            store.add_property(get_node_text(name), depth).merge(self.inference.class_shape(cls))
        body = cls.child_by_field_name("body")
        if body is None or point is None or not contains_point(body, point):
            return None
        return _frame(significant_children(body), depth + 1)

    def _nested_frame(self, node: ts.Node, point: Optional[Point], store: TypeStore, depth: int) -> Optional[Frame]:
        """Children to descend into when the caret lies inside *node*."""
        kind = node.type
        field = node.child_by_field_name

        if kind == "statement_block":
            return _frame(significant_children(node), depth + 1)
        if kind == "if_statement":
            return _frame([field("consequence"), field("alternative")], depth)
        if kind == "try_statement":
            return _frame([field("body"), field("handler"), field("finalizer")], depth)
        if kind == "catch_clause":
            body = field("body")
            if body is None or not _reaches(body, point):
                return None
            param = field("parameter")
            if param is not None and param.type == "identifier":
                store.add_property(get_node_text(param), depth + 1)
            return _frame(significant_children(body), depth + 1)
        if kind == "finally_clause":
            return _frame([field("body")], depth)
        if kind in LOOP_NODES:
            if kind == "for_in_statement" and field("kind") is not None:
                left = field("left")
                if left is not None and left.type == "identifier":
                    store.add_property(get_node_text(left), depth)
            return _frame([field("initializer"), field("body")], depth)
        if kind == "switch_statement":
            return _frame([field("body")], depth)
        if kind == "switch_body":
            return _frame(significant_children(node), depth + 1)
        if kind in ("switch_case", "switch_default"):
            return _frame(_children_without(node, "value"), depth)
        if kind in ("call_expression", "new_expression"):
            return _frame(significant_children(field("arguments")), depth + 1)
        if kind in ("object", "array", "class_body"):
            return _frame(significant_children(node), depth + 1)
        if kind in ("field_definition", "public_field_definition"):
            return _frame([field("value")], depth)
        return None


def _children_without(node: ts.Node, field_name: str) -> List[ts.Node]:
    skipped = node.child_by_field_name(field_name)
    return [ch for ch in significant_children(node) if skipped is None or ch.id != skipped.id]
