"""
Heuristic type inference over the JavaScript syntax tree, and the static
completion queries answered from the resulting Type Store.

A value's shape is described by *atomic types* ``{origin, source_index}``:
``{F, 0}`` reads "built with `new F()`", ``{f, 1}`` "returned by `f()`" and
``{f, 2 + n}`` "passed as the n-th argument of `f`". Looking up such a value
goes through the `sources` of the origin's store.
"""
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import tree_sitter as ts

from jsassist.lang.javascript import (
    CLASS_NODES, FUNCTION_NODES, LITERAL_CONSTRUCTORS,
    end_point, first_significant_child, get_node_text, parameter_names,
    property_key_name, significant_children, unwrap_parentheses,
)
from jsassist.logger import logger
from jsassist.models import Candidate, CompletionContext, CompletionKind, CompletionSet
from jsassist.typestore import (
    FUNCTION_TYPE, PARAMETER_SOURCE, RETURN_SOURCE, THIS_SOURCE, AtomicType, TypeStore,
)

if TYPE_CHECKING:
    from jsassist.scope import StaticAnalyzer

# Placeholder symbol holding a shape computed for an anonymous value.
_VALUE_SLOT = "<value>"


class TypeInference:
    """
    Type inference half of a static analysis pass. Function shapes need the
    scope walker, which is reached back through *analyzer*.
    """

    def __init__(self, analyzer: "StaticAnalyzer") -> None:
        self.analyzer = analyzer
        self._shapes: Dict[Tuple[int, int], TypeStore] = {}
        self._in_progress: Set[Tuple[int, int]] = set()
        self._nesting = 0
        self._nesting_capped = False

    def reset(self) -> None:
        self._shapes.clear()
        self._in_progress.clear()
        self._nesting = 0
        self._nesting_capped = False

    # ------------------------------------------------------------------ #
    # Paths
    # ------------------------------------------------------------------ #
    def member_path(self, member: ts.Node) -> Optional[List[str]]:
        """
        `foo.bar.baz` -> ["foo", "bar", "baz"], `this.bar` -> ["this", "bar"].
        None for computed members or chains rooted at something else.
        """
        names: List[str] = []
        node: Optional[ts.Node] = member
        while node is not None and node.type == "member_expression":
            prop = node.child_by_field_name("property")
            if prop is None or prop.type != "property_identifier":
                return None
            names.append(get_node_text(prop))
            node = unwrap_parentheses(node.child_by_field_name("object"))
        if node is None:
            return None
        if node.type == "identifier":
            names.append(get_node_text(node))
        elif node.type == "this":
            names.append("this")
        else:
            return None
        names.reverse()
        return self._strip_global(names)

    def assignment_path(self, left: Optional[ts.Node]) -> Optional[List[str]]:
        left = unwrap_parentheses(left)
        if left is None:
            return None
        if left.type == "identifier":
            return [get_node_text(left)]
        if left.type == "member_expression":
            return self.member_path(left)
        return None

    def _strip_global(self, path: List[str]) -> List[str]:
        # `window.foo` is the top-level `foo`.
        global_identifier = self.analyzer.settings.global_identifier
        if global_identifier and len(path) > 1 and path[0] == global_identifier:
            return path[1:]
        return path

    def type_from_member(self, store: TypeStore, member: ts.Node, weight: int) -> Optional[List[str]]:
        """Materialize the store nodes of a member chain and return its path."""
        path = self.member_path(member)
        if path:
            store.add_path(path, weight)
        return path

    # ------------------------------------------------------------------ #
    # Assignments
    # ------------------------------------------------------------------ #
    def type_from_assignment(
        self,
        store: TypeStore,
        path: Sequence[str],
        rhs: Optional[ts.Node],
        weight: int,
        base: Optional[TypeStore] = None,
    ) -> TypeStore:
        """
        Register *path* (relative to *base*, defaulting to the scope *store*)
        and type it from the assigned expression *rhs*. Symbols the
        expression mentions are registered in *store*.
        """
        target = (base if base is not None else store).add_path(path, weight)
        rhs = unwrap_parentheses(rhs)
        if rhs is None:
            return target

        kind = rhs.type
        if kind == "new_expression":
            self.type_from_new(store, rhs, weight, target=target)
        elif kind == "call_expression":
            self.type_from_call(store, rhs, weight, target=target)
        elif kind in FUNCTION_NODES:
            target.merge(self.function_shape(rhs))
        elif kind in CLASS_NODES:
            target.merge(self.class_shape(rhs))
        elif kind in LITERAL_CONSTRUCTORS:
            target.add_type(LITERAL_CONSTRUCTORS[kind], THIS_SOURCE)
            if kind == "object":
                self.type_from_object(store, target, rhs, weight)
        return target

    def type_from_object(self, store: TypeStore, target: TypeStore, obj: ts.Node, weight: int) -> None:
        for member in significant_children(obj):
            if member.type == "pair":
                name = property_key_name(member.child_by_field_name("key"))
                if name is not None:
                    self.type_from_assignment(
                        store, [name], member.child_by_field_name("value"), weight, base=target,
                    )
            elif member.type == "shorthand_property_identifier":
                target.add_property(get_node_text(member), weight)
            elif member.type == "method_definition":
                name = property_key_name(member.child_by_field_name("name"))
                if name is not None:
                    target.add_property(name, weight).merge(self.function_shape(member))

    def _callee_path(self, callee: Optional[ts.Node]) -> Optional[List[str]]:
        callee = unwrap_parentheses(callee)
        if callee is None:
            return None
        if callee.type == "identifier":
            return self._strip_global([get_node_text(callee)])
        if callee.type == "member_expression":
            return self.member_path(callee)
        return None

    def _type_arguments(self, store: TypeStore, origin: str, call: ts.Node, weight: int) -> None:
        # f(a, b): `a` has whatever shape f's first parameter expects.
        args = call.child_by_field_name("arguments")
        if args is None or args.type != "arguments":
            return
        for index, arg in enumerate(significant_children(args)):
            if arg.type == "identifier":
                store.add_property(get_node_text(arg), weight).add_type(origin, PARAMETER_SOURCE + index)

    def type_from_call(
        self,
        store: TypeStore,
        call: ts.Node,
        weight: int,
        target: Optional[TypeStore] = None,
    ) -> None:
        callee = unwrap_parentheses(call.child_by_field_name("function"))
        if callee is not None and callee.type in FUNCTION_NODES:
            # Immediately invoked: the value is the function's return shape.
            if target is not None:
                target.merge(self.resolve_return_shape(callee))
            return

        if callee is not None and callee.type == "member_expression":
            path = self.type_from_member(store, callee, weight)
        else:
            path = self._callee_path(callee)
            if path:
                store.add_path(path, weight)
        if not path:
            return
        store.resolve_path(path).add_type(FUNCTION_TYPE)
        origin = ".".join(path)
        self._type_arguments(store, origin, call, weight)
        if target is not None:
            target.add_type(origin, RETURN_SOURCE)

    def type_from_new(
        self,
        store: TypeStore,
        new: ts.Node,
        weight: int,
        target: Optional[TypeStore] = None,
    ) -> None:
        path = self._callee_path(new.child_by_field_name("constructor"))
        if not path:
            return
        # Constructors are taken to be global, whatever scope declares them.
        self.analyzer.root.add_path(path, weight).add_type(FUNCTION_TYPE)
        origin = ".".join(path)
        self._type_arguments(store, origin, new, weight)
        if target is not None:
            target.add_type(origin, THIS_SOURCE)

    # ------------------------------------------------------------------ #
    # Function shapes
    # ------------------------------------------------------------------ #
    def function_shape(self, fn: ts.Node) -> TypeStore:
        """
        `Function` typed store of *fn*: `sources[0]` holds what it assigns
        to `this`, `sources[1]` its return shape, `sources[2 + n]` how its
        n-th parameter is used. A fresh copy is returned on every call.

        Functions nested deeper than `max_function_nesting` get a bare
        `Function` shape.
        """
        key = (fn.start_byte, fn.end_byte)
        shape = self._shapes.get(key)
        if shape is None:
            if key in self._in_progress or self._nesting_exceeded():
                shape = TypeStore()
                shape.add_type(FUNCTION_TYPE)
                return shape
            self._in_progress.add(key)
            self._nesting += 1
            try:
                shape = self._compute_function_shape(fn)
            finally:
                self._nesting -= 1
                self._in_progress.discard(key)
            self._shapes[key] = shape
        return shape.copy()

    def _nesting_exceeded(self) -> bool:
        limit = self.analyzer.settings.max_function_nesting
        if self._nesting < limit:
            return False
        if not self._nesting_capped:
            logger.warning("Function nesting capped", max_function_nesting=limit)
            self._nesting_capped = True
        return True

    def _compute_function_shape(self, fn: ts.Node) -> TypeStore:
        shape = TypeStore()
        shape.add_type(FUNCTION_TYPE)

        body = fn.child_by_field_name("body")
        if body is not None and body.type == "statement_block":
            # No caret: every block of the body counts.
            scope = self.analyzer.analyze_scope(significant_children(body), None, TypeStore())
            this_store = scope.properties.get("this")
            if this_store is not None:
                shape.ensure_source(THIS_SOURCE).merge(this_store)
            for index, name in enumerate(parameter_names(fn)):
                param = scope.properties.get(name) if name else None
                if param is not None:
                    shape.ensure_source(PARAMETER_SOURCE + index).merge(param)

        shape.ensure_source(RETURN_SOURCE).merge(self._compute_return_shape(fn))
        return shape

    def class_shape(self, cls: ts.Node) -> TypeStore:
        """
        A class is a constructor: the constructor's `this` assignments and
        the instance fields give `sources[0]`, methods go on `prototype`.
        """
        shape = TypeStore()
        shape.add_type(FUNCTION_TYPE)
        instance = shape.ensure_source(THIS_SOURCE)
        prototype = shape.add_property("prototype")

        for member in significant_children(cls.child_by_field_name("body")):
            if member.type == "method_definition":
                name = property_key_name(member.child_by_field_name("name"))
                if name is None:
                    continue
                method = self.function_shape(member)
                if name == "constructor":
                    for index, source in enumerate(method.sources or []):
                        if index != RETURN_SOURCE:
                            shape.ensure_source(index).merge(source)
                elif any(ch.type == "static" for ch in member.children):
                    shape.add_property(name).merge(method)
                else:
                    prototype.add_property(name).merge(method)
            elif member.type in ("field_definition", "public_field_definition"):
                name = property_key_name(member.child_by_field_name("property"))
                if name is not None:
                    self.type_from_assignment(
                        TypeStore(), [name], member.child_by_field_name("value"), 0, base=instance,
                    )
        return shape

    def _find_return(self, body: ts.Node) -> Optional[ts.Node]:
        """First `return <expr>` of *body* in source order, nested functions excluded."""
        stack = list(reversed(significant_children(body)))
        while stack:
            node = stack.pop()
            if node.type == "return_statement":
                if first_significant_child(node) is not None:
                    return node
                continue
            if node.type in FUNCTION_NODES or node.type in CLASS_NODES:
                continue
            stack.extend(reversed(significant_children(node)))
        return None

    def resolve_return_shape(self, fn: ts.Node) -> TypeStore:
        """
        What calling *fn* gives back, taken from its first `return <expr>`
        (or the expression body of an arrow function). A function without
        such a return gives an empty store; the value of its last statement
        is not used.
        """
        if self._nesting_exceeded():
            return TypeStore()
        self._nesting += 1
        try:
            return self._compute_return_shape(fn)
        finally:
            self._nesting -= 1

    def _compute_return_shape(self, fn: ts.Node) -> TypeStore:
        body = fn.child_by_field_name("body")
        if body is None:
            return TypeStore()
        if body.type != "statement_block":
            # Arrow function with an expression body.
            return self._shape_of_expression(body)

        ret = self._find_return(body)
        if ret is None:
            return TypeStore()
        expr = unwrap_parentheses(first_significant_child(ret))
        if expr is None:
            return TypeStore()
        if expr.type in ("identifier", "this"):
            # Replay the function's scope up to the return statement.
            scope = self.analyzer.analyze_scope(significant_children(body), end_point(ret), TypeStore())
            name = "this" if expr.type == "this" else get_node_text(expr)
            found = scope.properties.get(name)
            return found.copy() if found is not None else TypeStore()
        return self._shape_of_expression(expr)

    def _shape_of_expression(self, expr: ts.Node) -> TypeStore:
        holder = TypeStore()
        return self.type_from_assignment(holder, [_VALUE_SLOT], expr, 0)


# --------------------------------------------------------------------------- #
# Static completion queries
# --------------------------------------------------------------------------- #
def _linked_stores(root: TypeStore, store: TypeStore) -> Iterator[TypeStore]:
    """
    Stores *store* inherits properties from through its types, in lookup
    order. The types of a linked store are followed in turn, each
    `(origin, index)` pair once.
    """
    seen: Set[Tuple[str, int]] = set()
    stack: List[Iterator[AtomicType]] = [store.atomic_types()]
    while stack:
        atomic = next(stack[-1], None)
        if atomic is None:
            stack.pop()
            continue
        key = (atomic.origin, atomic.source_index)
        if key in seen:
            continue
        seen.add(key)

        origin = root.resolve_path(atomic.origin.split("."))
        if origin is None or origin is store:
            continue
        if atomic.source_index == THIS_SOURCE:
            linked = [origin.get_source(THIS_SOURCE), origin.properties.get("prototype")]
        else:
            linked = [origin.get_source(atomic.source_index)]
        for target in linked:
            if target is not None:
                yield target
                stack.append(target.atomic_types())


def iter_properties(root: TypeStore, store: TypeStore) -> Iterator[Tuple[str, TypeStore]]:
    """
    Own properties of *store*, then the properties its types give it: for
    `{F, 0}` the `this` properties of F and those of `F.prototype`, for
    `{f, i}` the i-th source of f. A source that is itself typed (f ends
    with `return new F()`) is expanded the same way.
    """
    yield from store.properties.items()
    for linked in _linked_stores(root, store):
        yield from linked.properties.items()


def resolve_property(root: TypeStore, store: TypeStore, name: str) -> Optional[TypeStore]:
    for prop_name, child in iter_properties(root, store):
        if prop_name == name:
            return child
    return None


def resolve_chain(root: TypeStore, chain: Sequence[str]) -> Optional[TypeStore]:
    store: Optional[TypeStore] = root
    for name in chain:
        if store is None:
            return None
        store = resolve_property(root, store, name)
    return store


def lookup_completions(
    root: TypeStore,
    context: CompletionContext,
    is_identifier: Callable[[str], bool],
) -> CompletionSet:
    """
    Static candidates for *context*: the properties of the store reached
    through the chain that start with the typed prefix. Top-level symbols
    score their weight, properties score 0.
    """
    completion = CompletionSet()
    if context.kind not in (CompletionKind.IDENTIFIER, CompletionKind.PROPERTY):
        return completion
    if context.kind == CompletionKind.IDENTIFIER:
        if not context.chain:
            return completion
        path, prefix = context.chain[:-1], context.chain[-1]
    else:
        path, prefix = context.chain, ""

    store = resolve_chain(root, path)
    if store is None:
        return completion
    for name, child in iter_properties(root, store):
        # The candidate must match and have something to add.
        if not name.startswith(prefix) or len(name) <= len(prefix):
            continue
        if name in completion or not is_identifier(name):
            continue
        score = max(child.weight, 0) if not path else 0
        completion.insert(Candidate(display=name, prefix=prefix, score=score))
    return completion
