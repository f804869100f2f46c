import pytest

from jsassist.lang.javascript import JavaScriptTokenizer
from jsassist.models import CompletionContext, CompletionKind
from jsassist.sandbox import (
    PythonReflector, get_matched_props, identifier_lookup, prototype_of,
)
from jsassist.typestore import TypeStore


@pytest.fixture
def is_identifier():
    return JavaScriptTokenizer().is_identifier


@pytest.fixture
def reflector():
    return PythonReflector()


class Config:
    level = 3

    def __init__(self):
        self.verbose = True

    def reload(self):
        return None

    @property
    def broken(self):
        raise RuntimeError("accessors must not be evaluated")


def _identifier(*chain):
    return CompletionContext(kind=CompletionKind.IDENTIFIER, chain=list(chain))


# ------------------------------------------------------------------ #
# reflection
# ------------------------------------------------------------------ #
def test_mapping_prototype_chain(reflector):
    obj = {"a": 1, "__proto__": {"b": 2, "a": 3}}
    assert get_matched_props(obj, "", reflector) == ["a", "b"]


def test_array_indices_are_skipped(reflector):
    assert get_matched_props({"0": "x", "1": "y", "length": 2}, "", reflector) == ["length"]


def test_max_properties(reflector):
    assert len(get_matched_props({"aa": 1, "ab": 2, "ac": 3}, "a", reflector, max_properties=2)) == 2


def test_python_objects(reflector):
    names = get_matched_props(Config(), "", reflector)
    assert names[0] == "verbose"
    assert {"level", "reload", "broken"} <= set(names)
    assert reflector.get_property_descriptor(Config(), "broken").is_accessor
    assert not reflector.get_property_descriptor(Config(), "level").is_accessor


def test_prototype_of(reflector):
    global_object = {"Number": {"prototype": {"bar": 0}}, "String": str}
    assert prototype_of(global_object, "Number", reflector) == {"bar": 0}
    assert prototype_of(global_object, "String", reflector) is str
    assert prototype_of(global_object, "RegExp", reflector) is None


# ------------------------------------------------------------------ #
# lookups
# ------------------------------------------------------------------ #
def test_lookup_through_chain(is_identifier):
    completion = identifier_lookup({"foo": {"bar": 0}}, _identifier("foo", "ba"), None, is_identifier)
    assert completion.to_list() == [{"display": "bar", "prefix": "ba", "postfix": "r", "score": -1}]


def test_lookup_python_object(is_identifier):
    completion = identifier_lookup({"cfg": Config()}, _identifier("cfg", "re"), None, is_identifier)
    assert completion.displays() == ["reload"]


def test_lookup_stops_at_accessors(is_identifier):
    completion = identifier_lookup(
        {"cfg": Config()}, _identifier("cfg", "broken", "x"), None, is_identifier,
    )
    assert len(completion) == 0


def test_string_and_regex_lookup(is_identifier):
    global_object = {
        "String": {"prototype": {"big": 1}},
        "RegExp": {"prototype": {"test": "something"}},
    }
    string = identifier_lookup(global_object, CompletionContext(kind=CompletionKind.STRING), None, is_identifier)
    assert string.displays() == ["big"]
    regex = identifier_lookup(global_object, CompletionContext(kind=CompletionKind.REGEX), None, is_identifier)
    assert regex.displays() == ["test"]


def test_string_lookup_on_python_str(is_identifier):
    ctx = CompletionContext(kind=CompletionKind.STRING, chain=["up"])
    assert identifier_lookup({"String": str}, ctx, None, is_identifier).displays() == ["upper"]


def test_lookup_from_static_type(is_identifier):
    store = TypeStore()
    store.add_property("foo").add_type("Number")
    global_object = {"Number": {"prototype": {"bar": 0, "toFixed": 1}}}
    completion = identifier_lookup(global_object, _identifier("foo", "b"), store, is_identifier)
    assert completion.displays() == ["bar"]
    assert completion.get("bar").score == -1


def test_non_identifiers_are_dropped(is_identifier):
    completion = identifier_lookup({"foo": {"b*": 0, "if": 1, "baz": 2}}, _identifier("foo", ""), None, is_identifier)
    assert completion.displays() == ["baz"]
