"""
Dynamic lookup: complete against a live object graph standing for the
JavaScript global object.

Objects are reached through an `ObjectReflector`, which knows how to list
own property names, read property descriptors and follow the prototype
chain. Accessor properties are never invoked.
"""
import inspect
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from jsassist.inference import resolve_chain
from jsassist.logger import logger
from jsassist.models import Candidate, CompletionContext, CompletionKind, CompletionSet
from jsassist.typestore import THIS_SOURCE, TypeStore

# Every dynamic candidate ranks below static ones.
SANDBOX_SCORE = -1


@dataclass
class PropertyDescriptor:
    value: Any = None
    is_accessor: bool = False


class ObjectReflector(ABC):
    """Read-only view over an object graph with prototype chains."""

    @abstractmethod
    def own_property_names(self, obj: Any) -> List[str]:
        ...

    @abstractmethod
    def get_prototype(self, obj: Any) -> Any:
        """Next object in the prototype chain of *obj*, or None."""
        ...

    @abstractmethod
    def get_own_descriptor(self, obj: Any, name: str) -> Optional[PropertyDescriptor]:
        ...

    def iter_chain(self, obj: Any) -> Iterator[Any]:
        """*obj* and its prototypes, nearest first."""
        seen = set()
        current = obj
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            yield current
            current = self.get_prototype(current)

    def get_property_descriptor(self, obj: Any, name: str) -> Optional[PropertyDescriptor]:
        for current in self.iter_chain(obj):
            descriptor = self.get_own_descriptor(current, name)
            if descriptor is not None:
                return descriptor
        return None


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _is_accessor(attr: Any) -> bool:
    if isinstance(attr, property):
        return True
    if inspect.ismemberdescriptor(attr) or inspect.isgetsetdescriptor(attr):
        return True
    return inspect.isdatadescriptor(attr)


class PythonReflector(ObjectReflector):
    """
    Reflects plain Python values.

    Mappings are JavaScript objects: their string keys are the own
    properties and the value under ``"__proto__"`` is the prototype. Other
    objects expose their ``__dict__``; the prototype of an instance is its
    class and that of a class is the next class of its MRO. Properties and
    other data descriptors are accessors.
    """

    PROTO_KEY = "__proto__"

    def own_property_names(self, obj: Any) -> List[str]:
        if isinstance(obj, Mapping):
            return [k for k in obj if isinstance(k, str) and k != self.PROTO_KEY]
        try:
            names = list(vars(obj))
        except TypeError:
            return []
        return [n for n in names if isinstance(n, str) and not _is_dunder(n)]

    def get_prototype(self, obj: Any) -> Any:
        if isinstance(obj, Mapping):
            return obj.get(self.PROTO_KEY)
        if isinstance(obj, type):
            mro = obj.__mro__
            return mro[1] if len(mro) > 1 else None
        return type(obj)

    def get_own_descriptor(self, obj: Any, name: str) -> Optional[PropertyDescriptor]:
        if isinstance(obj, Mapping):
            if name == self.PROTO_KEY or name not in obj:
                return None
            return PropertyDescriptor(value=obj[name])
        if _is_dunder(name):
            return None
        try:
            own = vars(obj)
        except TypeError:
            return None
        if name not in own:
            return None
        attr = own[name]
        if isinstance(obj, type) and _is_accessor(attr):
            return PropertyDescriptor(is_accessor=True)
        return PropertyDescriptor(value=attr)


# --------------------------------------------------------------------------- #
# Lookups
# --------------------------------------------------------------------------- #
def get_matched_props(
    obj: Any,
    match_prop: str,
    reflector: ObjectReflector,
    max_properties: Optional[int] = None,
) -> List[str]:
    """
    Names of the properties of *obj* and its prototypes starting with
    *match_prop*, nearest first. Array indices are skipped.
    """
    names: Dict[str, None] = {}
    remaining = max_properties
    for current in reflector.iter_chain(obj):
        for name in reflector.own_property_names(current):
            if not name.startswith(match_prop) or name in names:
                continue
            if remaining is not None:
                remaining -= 1
                if remaining < 0:
                    return list(names)
            if name.isdigit():
                continue
            names[name] = None
    return list(names)


def completion_from_value(
    value: Any,
    match_prop: str,
    is_identifier: Callable[[str], bool],
    reflector: ObjectReflector,
    max_properties: Optional[int] = None,
) -> CompletionSet:
    completion = CompletionSet()
    for name in get_matched_props(value, match_prop, reflector, max_properties):
        if len(name) <= len(match_prop) or not is_identifier(name):
            continue
        completion.insert(Candidate(display=name, prefix=match_prop, score=SANDBOX_SCORE))
    return completion


def prototype_of(global_object: Any, constructor: str, reflector: ObjectReflector) -> Any:
    """
    `global[constructor].prototype`, without invoking accessors. A Python
    class stands for its own prototype.
    """
    descriptor = reflector.get_property_descriptor(global_object, constructor)
    if descriptor is None or descriptor.is_accessor or descriptor.value is None:
        return None
    ctor = descriptor.value
    proto = reflector.get_property_descriptor(ctor, "prototype")
    if proto is not None and not proto.is_accessor and proto.value is not None:
        return proto.value
    if isinstance(ctor, type):
        return ctor
    return None


def dyn_analysis_from_type(
    global_object: Any,
    symbols: List[str],
    store: TypeStore,
    match_prop: str,
    is_identifier: Callable[[str], bool],
    reflector: ObjectReflector,
    max_properties: Optional[int] = None,
) -> CompletionSet:
    """
    Complete a statically known symbol from the live prototypes of the
    constructors it was built with (eg. `Number.prototype` for `var a = 0`).
    """
    completion = CompletionSet()
    target = resolve_chain(store, symbols)
    if target is None:
        return completion
    for atomic in target.atomic_types():
        if atomic.source_index != THIS_SOURCE:
            continue
        proto = prototype_of(global_object, atomic.origin, reflector)
        if proto is not None:
            completion.meld(completion_from_value(proto, match_prop, is_identifier, reflector, max_properties))
    return completion


def identifier_lookup(
    global_object: Any,
    context: CompletionContext,
    store: Optional[TypeStore],
    is_identifier: Callable[[str], bool],
    reflector: Optional[ObjectReflector] = None,
    max_properties: Optional[int] = None,
) -> CompletionSet:
    """
    Dynamic candidates for *context*, read from *global_object*. The
    optional static *store* lets symbols absent from the live graph be
    completed from their inferred constructor.
    """
    reflector = reflector or PythonReflector()
    completion = CompletionSet()
    match_prop = context.query_prefix
    value: Any = global_object

    if context.kind in (CompletionKind.IDENTIFIER, CompletionKind.PROPERTY):
        symbols = context.chain[:-1] if context.kind == CompletionKind.IDENTIFIER else list(context.chain)
        for symbol in symbols:
            descriptor = reflector.get_property_descriptor(value, symbol)
            if descriptor is None:
                value = None
                break
            if descriptor.is_accessor:
                logger.debug("Sandbox: accessor not evaluated", symbol=symbol)
                value = None
                break
            value = descriptor.value
            if value is None:
                break
        if store is not None and symbols:
            completion.meld(dyn_analysis_from_type(
                global_object, symbols, store, match_prop, is_identifier, reflector, max_properties,
            ))
    elif context.kind == CompletionKind.STRING:
        value = prototype_of(global_object, "String", reflector)
    elif context.kind == CompletionKind.REGEX:
        value = prototype_of(global_object, "RegExp", reflector)

    if value is not None:
        completion.meld(completion_from_value(value, match_prop, is_identifier, reflector, max_properties))
    return completion
