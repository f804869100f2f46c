from jsassist.typestore import (
    FUNCTION_TYPE, PARAMETER_SOURCE, RETURN_SOURCE, THIS_SOURCE, AtomicType, TypeStore,
)


def test_add_property_bumps_weight_on_repeat():
    store = TypeStore()
    child = store.add_property("foo", 2)
    assert child.weight == 2
    assert store.add_property("foo", 0) is child
    assert child.weight == 3


def test_add_and_resolve_path():
    store = TypeStore()
    leaf = store.add_path(["foo", "bar", "baz"], 1)
    assert store.resolve_path(["foo", "bar", "baz"]) is leaf
    assert store.resolve_path(["foo", "nope"]) is None
    assert store.resolve_path([]) is store


def test_function_type_gets_return_source():
    store = TypeStore()
    store.add_type(FUNCTION_TYPE)
    assert store.is_type(FUNCTION_TYPE)
    assert store.get_source(THIS_SOURCE) is not None
    assert store.get_source(RETURN_SOURCE) is not None
    assert store.get_source(PARAMETER_SOURCE) is None


def test_atomic_types_are_ordered():
    store = TypeStore()
    store.add_type("f", 3)
    store.add_type("f", 1)
    store.add_type("F", THIS_SOURCE)
    assert list(store.atomic_types()) == [
        AtomicType("f", 1), AtomicType("f", 3), AtomicType("F", 0),
    ]


def test_merge_is_deep_and_copies():
    a = TypeStore()
    a.add_path(["x", "y"])
    b = TypeStore()
    b.add_path(["x", "z"])
    b.add_property("w").add_type("Number")
    b.ensure_source(PARAMETER_SOURCE).add_property("opt")

    a.merge(b)
    assert set(a.properties) == {"x", "w"}
    assert set(a.properties["x"].properties) == {"y", "z"}
    assert a.properties["w"].is_type("Number")
    assert "opt" in a.get_source(PARAMETER_SOURCE).properties

    # nothing is shared with the merged store
    a.properties["w"].add_property("extra")
    assert "extra" not in b.properties["w"].properties


def test_copy_is_independent():
    store = TypeStore()
    store.add_path(["a", "b"])
    clone = store.copy()
    clone.add_path(["a", "c"])
    assert store.resolve_path(["a", "c"]) is None
    assert TypeStore().is_empty()
    assert not clone.is_empty()
