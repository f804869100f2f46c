from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProgrammingLanguage(str, Enum):
    JAVASCRIPT = "javascript"


class CompletionKind(str, Enum):
    # foo.ba|
    IDENTIFIER = "identifier"
    # foo.|
    PROPERTY = "property"
    # "foo".|
    STRING = "string"
    # /foo/.|
    REGEX = "regex"


# ---------------------------------------------------------------------------
# Editor-facing data containers
# ---------------------------------------------------------------------------


class Caret(BaseModel):
    """Caret position, both coordinates 0-based. `ch` counts characters."""
    line: int = Field(ge=0)
    ch: int = Field(ge=0)

    @classmethod
    def coerce(cls, value: "Caret | Dict[str, Any]") -> "Caret":
        if isinstance(value, Caret):
            return value
        return cls.model_validate(value)


class CompletionContext(BaseModel):
    """
    What the caret is completing.

    `chain` is the dotted identifier path leading to the caret. For
    IDENTIFIER the last segment is the partially typed name; for PROPERTY
    the caret follows a trailing dot and no partial segment is present.
    STRING and REGEX contexts hold at most the partial name typed after
    the literal's dot.
    """
    kind: CompletionKind
    chain: List[str] = Field(default_factory=list)

    @property
    def query_prefix(self) -> str:
        if self.kind != CompletionKind.PROPERTY and self.chain:
            return self.chain[-1]
        return ""


class Candidate(BaseModel):
    display: str  # what the user sees
    prefix: str = ""  # already typed text the candidate replaces
    score: int = 0

    @property
    def postfix(self) -> str:
        """Text inserted when the candidate is picked."""
        return self.display[len(self.prefix):]

    # Users tell candidates apart by what is displayed.
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Candidate):
            return NotImplemented
        return self.display == other.display

    def __hash__(self) -> int:
        return hash(self.display)


class CompletionSet:
    """
    Insertion-ordered collection of candidates keyed by their display string.
    """

    def __init__(self, candidates: Optional[Iterable[Candidate]] = None) -> None:
        self._by_display: Dict[str, Candidate] = {}
        self.candidates: List[Candidate] = []
        for candidate in candidates or ():
            self.insert(candidate)

    def insert(self, candidate: Candidate) -> bool:
        if candidate.display in self._by_display:
            return False
        self._by_display[candidate.display] = candidate
        self.candidates.append(candidate)
        return True

    def meld(self, other: "CompletionSet") -> None:
        for candidate in other.candidates:
            self.insert(candidate)

    def sort(self) -> None:
        # list.sort is stable: equal scores keep their insertion order.
        self.candidates.sort(key=lambda c: c.score, reverse=True)

    def get(self, display: str) -> Optional[Candidate]:
        return self._by_display.get(display)

    def displays(self) -> List[str]:
        return [c.display for c in self.candidates]

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {"display": c.display, "prefix": c.prefix, "postfix": c.postfix, "score": c.score}
            for c in self.candidates
        ]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Candidate):
            item = item.display
        return item in self._by_display

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def __repr__(self) -> str:
        return f"CompletionSet({self.candidates!r})"
