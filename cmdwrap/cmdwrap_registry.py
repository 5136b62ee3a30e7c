"""
The function registry: the table of descriptors the dispatcher works from.

Functions are tagged with `@wrap` and collected once, either explicitly with
`FunctionRegistry.register` or by scanning a module with
`FunctionRegistry.from_module`. Introspection happens only here; the binder,
dispatcher and help printer read the resulting descriptors.
"""

import inspect
import typing
from collections import OrderedDict
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from cmdwrap.cmdwrap_coerce import param_type_for, param_type_for_value
from cmdwrap.cmdwrap_datatypes import (
    CandidateSet, FunctionDescriptor, FunctionNotFound, ParameterDescriptor, ParamType
)


@dataclass(frozen=True)
class WrapTag:
    name: Optional[str] = None
    description: Optional[str] = None


def wrap(func=None, *, name: Optional[str] = None, description: Optional[str] = None):
    """A decorator to explicitly mark functions as callable from the command line.

    Usable bare (`@wrap`) or with options (`@wrap(name="greet")`). Giving
    several functions the same `name` makes them overloads of one command.
    `description` overrides any documentation summary in help output.
    """
    tag = WrapTag(name, description)

    def decorator(f):
        target = f.__func__ if isinstance(f, (staticmethod, classmethod)) else f
        target._cmdwrap = tag
        return f

    if func is not None:
        return decorator(func)
    return decorator


def wrap_tag(member) -> Optional[WrapTag]:
    """Return the WrapTag on a function, bound method or static/class method."""
    tag = getattr(member, "_cmdwrap", None)
    if tag is None:
        inner = getattr(member, "__func__", None)
        if inner is not None:
            tag = getattr(inner, "_cmdwrap", None)
    return tag if isinstance(tag, WrapTag) else None


# ===================================================================
# Descriptor construction
# ===================================================================

def _type_hints(func: Callable) -> Dict[str, Any]:
    target = getattr(func, "__func__", func)
    try:
        return typing.get_type_hints(target, include_extras=True)
    except Exception as e:
        # Unresolvable forward references; fall back to the raw annotations
        logger.debug("Could not resolve annotations of {}: {}", getattr(target, "__qualname__", target), e)
        return dict(getattr(target, "__annotations__", {}) or {})


def describe_parameters(func: Callable, types: Optional[Dict[str, ParamType]] = None) -> tuple:
    hints = _type_hints(func)
    params = []
    for p in inspect.signature(func).parameters.values():
        # *args and **kwargs cannot be addressed by a flat --name option
        if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        optional = p.default is not inspect.Parameter.empty
        default = p.default if optional else None
        type_name = None
        if types and p.name in types:
            ptype = types[p.name]
        elif p.name in hints:
            ptype, type_name = param_type_for(hints[p.name])
        elif optional:
            ptype = param_type_for_value(default)
        else:
            ptype = ParamType.STRING
        params.append(ParameterDescriptor(
            name=p.name,
            type=ptype,
            optional=optional,
            default=default,
            type_name=type_name,
            keyword_only=p.kind is inspect.Parameter.KEYWORD_ONLY,
        ))
    return tuple(params)


def describe(func: Callable, *, module: Optional[str] = None, qualname: Optional[str] = None,
             exposed: Optional[bool] = None, name: Optional[str] = None,
             description: Optional[str] = None,
             types: Optional[Dict[str, ParamType]] = None) -> FunctionDescriptor:
    """Build a FunctionDescriptor for a directly callable function."""
    tag = wrap_tag(func)
    if exposed is None:
        exposed = tag is not None
    if tag is not None:
        name = name or tag.name
        description = description or tag.description
    return FunctionDescriptor(
        module=module or _short_module(getattr(func, "__module__", None)),
        qualname=qualname or getattr(func, "__qualname__", None) or func.__name__,
        func=func,
        parameters=describe_parameters(func, types),
        exposed=exposed,
        display_name=name,
        description=description,
    )


def _short_module(module_name: Optional[str]) -> str:
    if not module_name:
        return "<unknown>"
    return module_name.rsplit(".", 1)[-1]


# ===================================================================
# Registry
# ===================================================================

class FunctionRegistry:
    """An ordered table of FunctionDescriptors."""

    def __init__(self, descriptors: Iterable[FunctionDescriptor] = ()):
        self._descriptors: List[FunctionDescriptor] = list(descriptors)

    def __iter__(self):
        return iter(self._descriptors)

    def __len__(self):
        return len(self._descriptors)

    def __repr__(self) -> str:
        return f"<FunctionRegistry functions={len(self._descriptors)}>"

    def add(self, descriptor: FunctionDescriptor) -> FunctionDescriptor:
        self._descriptors.append(descriptor)
        return descriptor

    def register(self, func: Callable, **kwargs) -> FunctionDescriptor:
        """Describe `func` and add it; keyword options are passed to `describe`."""
        kwargs.setdefault("exposed", True)
        return self.add(describe(func, **kwargs))

    @classmethod
    def from_module(cls, module: ModuleType) -> 'FunctionRegistry':
        """Discover the directly callable functions a module defines.

        Public module-level functions and the public static and class methods
        of public classes, in definition order. Instance methods are skipped.
        """
        registry = cls()
        module_name = module.__name__
        short = _short_module(module_name)
        for attr, member in vars(module).items():
            if attr.startswith("_"):
                continue
            if inspect.isfunction(member) and member.__module__ == module_name:
                registry.add(describe(member, module=short, qualname=attr))
            elif inspect.isclass(member) and member.__module__ == module_name:
                for cattr, raw in vars(member).items():
                    if cattr.startswith("_"):
                        continue
                    if not isinstance(raw, (staticmethod, classmethod)):
                        continue
                    bound = getattr(member, cattr)
                    registry.add(describe(bound, module=short, qualname=f"{attr}.{cattr}"))
        logger.debug("Discovered {} functions in module {}", len(registry), module_name)
        return registry

    # --- Call tables ---

    def all_calls(self) -> Dict[str, CandidateSet]:
        """Every discovered function, keyed by qualname."""
        return self._group(self._descriptors, lambda d: d.qualname)

    def exposed_calls(self) -> Dict[str, CandidateSet]:
        """Exposed functions keyed by display name.

        Falls back to every discovered function when nothing is tagged.
        """
        exposed = [d for d in self._descriptors if d.exposed]
        if not exposed:
            logger.debug(
                "No functions are tagged with @wrap; showing every discovered function. "
                "Tag the functions you want callable from the command line to filter this list."
            )
            return self.all_calls()
        return self._group(exposed, lambda d: d.name)

    @staticmethod
    def _group(descriptors, key) -> Dict[str, CandidateSet]:
        groups: Dict[str, List[FunctionDescriptor]] = OrderedDict()
        for d in descriptors:
            groups.setdefault(key(d), []).append(d)
        return OrderedDict((n, CandidateSet.build(n, ds)) for n, ds in groups.items())


# ===================================================================
# Candidate resolution
# ===================================================================

def _matches(descriptor: FunctionDescriptor, name: str) -> bool:
    if name == descriptor.name:
        return True
    module, _, rest = name.partition(".")
    return bool(rest) and module == descriptor.module and rest == descriptor.name


def resolve(registry: FunctionRegistry, name: str, exposed_only: bool = True) -> CandidateSet:
    """Return the same-named candidates for `name`, most parameters first.

    Matching is exact and case-sensitive against the display name, which is
    the `@wrap` name when one is given and the qualname otherwise;
    `module.name` restricts the match to one owning module. When
    `exposed_only` is set and the registry has tagged functions, untagged ones
    are not eligible.
    """
    pool = list(registry)
    if exposed_only and any(d.exposed for d in pool):
        pool = [d for d in pool if d.exposed]
    found = [d for d in pool if _matches(d, name)]
    if not found:
        raise FunctionNotFound(name)
    return CandidateSet.build(name, found)
