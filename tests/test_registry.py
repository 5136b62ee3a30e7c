import types
import typing

import pytest

from cmdwrap import wrap, FunctionRegistry, resolve
from cmdwrap.cmdwrap_registry import describe, wrap_tag
from cmdwrap.cmdwrap_datatypes import FunctionNotFound, ParamType


def make_module(name="hostmod", source=""):
    module = types.ModuleType(name)
    exec(source, module.__dict__)
    return module


HOST_SOURCE = '''
from cmdwrap import wrap

@wrap
def greet(name: str):
    return "hello " + name

def helper(x):
    return x

def _private():
    pass

class Tools:
    @staticmethod
    @wrap(name="add")
    def add_two(a: int, b: int):
        return a + b

    @classmethod
    def describe(cls, verbose: bool = False):
        return cls.__name__

    def instance_only(self, y):
        return y
'''


def test_wrap_marks_bare_and_configured_functions():
    @wrap
    def a():
        pass

    @wrap(name="bee", description="Does b.")
    def b():
        pass

    def c():
        pass

    assert wrap_tag(a) is not None and wrap_tag(a).name is None
    assert wrap_tag(b).name == "bee"
    assert wrap_tag(b).description == "Does b."
    assert wrap_tag(c) is None


def test_describe_builds_ordered_parameters():
    def f(name: str, count: int = 3, *rest, flag: bool = False, **extra):
        pass

    d = describe(f, module="m")
    assert [p.name for p in d.parameters] == ["name", "count", "flag"]
    name, count, flag = d.parameters
    assert name.type is ParamType.STRING and not name.optional
    assert count.type is ParamType.INTEGER and count.optional and count.default == 3
    assert flag.keyword_only and flag.default is False
    assert d.module == "m"
    assert not d.exposed


def test_describe_infers_types_from_defaults_and_overrides():
    def f(ratio=0.5, label="x", raw=None, width: int = 8):
        pass

    d = describe(f, types={"width": ParamType.UINT16})
    ratio, label, raw, width = d.parameters
    assert ratio.type is ParamType.DOUBLE
    assert label.type is ParamType.STRING
    assert raw.type is ParamType.STRING
    assert width.type is ParamType.UINT16


def test_describe_unsupported_annotation():
    def f(items: typing.List[int]):
        pass

    (items,) = describe(f).parameters
    assert items.type is ParamType.UNSUPPORTED
    assert items.display_type


def test_from_module_discovers_functions_and_static_methods():
    module = make_module(source=HOST_SOURCE)
    registry = FunctionRegistry.from_module(module)
    qualnames = [d.qualname for d in registry]
    assert qualnames == ["greet", "helper", "Tools.add_two", "Tools.describe"]
    assert all(d.module == "hostmod" for d in registry)

    by_name = {d.qualname: d for d in registry}
    assert by_name["greet"].exposed
    assert not by_name["helper"].exposed
    assert by_name["Tools.add_two"].name == "add"
    # Class methods are bound to the class, so cls is not a parameter
    assert [p.name for p in by_name["Tools.describe"].parameters] == ["verbose"]


def test_exposed_calls_uses_tagged_functions():
    registry = FunctionRegistry.from_module(make_module(source=HOST_SOURCE))
    calls = registry.exposed_calls()
    assert list(calls) == ["greet", "add"]


def test_exposed_calls_falls_back_to_all_when_nothing_is_tagged():
    module = make_module(source="def one():\n    pass\n\ndef two(x):\n    pass\n")
    calls = FunctionRegistry.from_module(module).exposed_calls()
    assert list(calls) == ["one", "two"]


def test_resolve_orders_by_descending_parameter_count():
    registry = FunctionRegistry()

    def short(a):
        pass

    def long(a, b):
        pass

    def other_short(x):
        pass

    registry.register(short, name="f")
    registry.register(long, name="f")
    registry.register(other_short, name="f")
    candidates = resolve(registry, "f")
    assert [d.qualname.split(".")[-1] for d in candidates] == ["long", "short", "other_short"]
    assert candidates.biggest.func is long


def test_resolve_is_case_sensitive_and_supports_qualified_names():
    module = make_module(source=HOST_SOURCE)
    registry = FunctionRegistry.from_module(module)
    assert resolve(registry, "greet").biggest.qualname == "greet"
    assert resolve(registry, "hostmod.greet").biggest.qualname == "greet"
    assert resolve(registry, "hostmod.add").biggest.qualname == "Tools.add_two"
    with pytest.raises(FunctionNotFound):
        resolve(registry, "Greet")
    with pytest.raises(FunctionNotFound):
        resolve(registry, "othermod.greet")


def test_resolve_exposed_only_hides_untagged_functions():
    registry = FunctionRegistry.from_module(make_module(source=HOST_SOURCE))
    with pytest.raises(FunctionNotFound):
        resolve(registry, "helper")
    assert resolve(registry, "helper", exposed_only=False).biggest.qualname == "helper"
    assert resolve(registry, "Tools.describe", exposed_only=False).biggest.arity == 1


def test_resolve_missing_name():
    with pytest.raises(FunctionNotFound) as exc:
        resolve(FunctionRegistry(), "nothing")
    assert exc.value.name == "nothing"
    assert "not recognized" in str(exc.value)


def test_renamed_function_is_only_reachable_by_its_wrap_name():
    registry = FunctionRegistry.from_module(make_module(source=HOST_SOURCE))
    assert resolve(registry, "add", exposed_only=False).biggest.qualname == "Tools.add_two"
    for name in ("Tools.add_two", "add_two", "hostmod.Tools.add_two"):
        with pytest.raises(FunctionNotFound):
            resolve(registry, name, exposed_only=False)
