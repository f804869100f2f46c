import copy
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set

# Origin name of every function value.
FUNCTION_TYPE = "Function"

# Source indices of a function: which facet of it a value's shape comes from.
THIS_SOURCE = 0       # properties assigned to `this` (instances built with `new`)
RETURN_SOURCE = 1     # properties of the returned value
PARAMETER_SOURCE = 2  # parameter N is found at PARAMETER_SOURCE + N


@dataclass(frozen=True)
class AtomicType:
    """One hypothesis about where a value's shape comes from."""
    origin: str
    source_index: int


@dataclass
class TypeStore:
    """
    Symbol table node.

    • properties ↔ nested namespace, property name -> child store
    • type       ↔ compound type, origin name -> set of source indices
    • weight     ↔ ranking score (nesting depth, bumped on repeated mentions)
    • sources    ↔ only for `Function` typed stores: this-store, return-store,
                   then one store per observed parameter
    """
    properties: Dict[str, "TypeStore"] = field(default_factory=dict)
    type: Dict[str, Set[int]] = field(default_factory=dict)
    weight: int = 0
    sources: Optional[List["TypeStore"]] = None

    def add_property(self, name: str, weight: int = 0) -> "TypeStore":
        child = self.properties.get(name)
        if child is None:
            child = TypeStore(weight=weight)
            self.properties[name] = child
        else:
            child.weight = max(child.weight, weight) + 1
        return child

    def add_path(self, path: Sequence[str], weight: int = 0) -> "TypeStore":
        store = self
        for name in path:
            store = store.add_property(name, weight)
        return store

    def resolve_path(self, path: Sequence[str]) -> Optional["TypeStore"]:
        store: Optional[TypeStore] = self
        for name in path:
            if store is None:
                return None
            store = store.properties.get(name)
        return store

    def add_type(self, origin: str, source_index: int = THIS_SOURCE) -> None:
        self.type.setdefault(origin, set()).add(source_index)
        if origin == FUNCTION_TYPE:
            self.ensure_source(RETURN_SOURCE)

    def is_type(self, origin: str) -> bool:
        return origin in self.type

    def ensure_source(self, index: int) -> "TypeStore":
        if self.sources is None:
            self.sources = []
        while len(self.sources) <= index:
            self.sources.append(TypeStore())
        return self.sources[index]

    def get_source(self, index: int) -> Optional["TypeStore"]:
        if self.sources is None or index >= len(self.sources):
            return None
        return self.sources[index]

    def atomic_types(self) -> Iterator[AtomicType]:
        for origin, indices in self.type.items():
            for index in sorted(indices):
                yield AtomicType(origin, index)

    def is_empty(self) -> bool:
        return not self.type and not self.properties

    def copy(self) -> "TypeStore":
        return copy.deepcopy(self)

    def merge(self, other: "TypeStore") -> "TypeStore":
        """
        Fold *other* into this store **in-place**. Children and sources
        coming from *other* are copied, never shared.
        """
        self.weight = max(self.weight, other.weight)
        for origin, indices in other.type.items():
            self.type.setdefault(origin, set()).update(indices)
        for name, child in other.properties.items():
            own = self.properties.get(name)
            if own is None:
                self.properties[name] = child.copy()
            else:
                own.merge(child)
        if other.sources is not None:
            for index, source in enumerate(other.sources):
                self.ensure_source(index).merge(source)
        return self
