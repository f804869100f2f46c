import pytest
from pydantic import ValidationError

from jsassist.helpers import blank_trailing_dot, caret_offset, caret_to_point
from jsassist.models import Candidate, Caret, CompletionContext, CompletionKind, CompletionSet


def test_candidate_postfix_and_identity():
    c = Candidate(display="void", prefix="vo", score=-25)
    assert c.postfix == "id"
    assert c == Candidate(display="void", score=3)
    assert len({c, Candidate(display="void")}) == 1


def test_completion_set_keeps_first_insert():
    completion = CompletionSet()
    assert completion.insert(Candidate(display="foo", score=0))
    assert not completion.insert(Candidate(display="foo", score=-1))
    assert len(completion) == 1
    assert completion.get("foo").score == 0


def test_completion_set_meld_and_sort_is_stable():
    first = CompletionSet([
        Candidate(display="a", score=-1),
        Candidate(display="b", score=0),
    ])
    second = CompletionSet([
        Candidate(display="a", score=5),
        Candidate(display="c", score=0),
        Candidate(display="d", score=2),
    ])
    first.meld(second)
    first.sort()
    assert first.displays() == ["d", "b", "c", "a"]
    assert "a" in first
    assert first.get("a").score == -1
    assert first.to_list()[0] == {"display": "d", "prefix": "", "postfix": "d", "score": 2}


def test_query_prefix():
    assert CompletionContext(kind=CompletionKind.IDENTIFIER, chain=["foo", "ba"]).query_prefix == "ba"
    assert CompletionContext(kind=CompletionKind.PROPERTY, chain=["foo"]).query_prefix == ""
    assert CompletionContext(kind=CompletionKind.STRING).query_prefix == ""


def test_caret_validation():
    assert Caret.coerce({"line": 1, "ch": 2}) == Caret(line=1, ch=2)
    with pytest.raises(ValidationError):
        Caret.coerce({"line": 0, "ch": -3})
    with pytest.raises(ValidationError):
        Caret.coerce({"line": 0})


# ------------------------------------------------------------------ #
# caret helpers
# ------------------------------------------------------------------ #
def test_caret_offset():
    source = "ab\ncde\n"
    assert caret_offset(source, Caret(line=1, ch=2)) == 5
    assert caret_offset(source, Caret(line=2, ch=0)) == 7
    assert caret_offset(source, Caret(line=1, ch=4)) is None
    assert caret_offset(source, Caret(line=3, ch=0)) is None


def test_caret_to_point_counts_bytes():
    assert caret_to_point("é.x", Caret(line=0, ch=2)) == (0, 3)
    assert caret_to_point("a\nb", Caret(line=5, ch=0)) == (1, 1)


def test_blank_trailing_dot():
    assert blank_trailing_dot("var f;\nf.", Caret(line=1, ch=2)) == "var f;\nf "
    assert blank_trailing_dot("f. ", Caret(line=0, ch=3)) == "f  "
    assert blank_trailing_dot("f.b", Caret(line=0, ch=3)) is None
    assert blank_trailing_dot("", Caret(line=0, ch=0)) is None
