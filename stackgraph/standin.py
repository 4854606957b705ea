"""Instrumented placeholders handed to guest programs in place of SDK values.

A ``StandIn`` absorbs every operation a guest performs on it. Reads and calls
only extend its provenance; the capture context decides when a call is a
resource construction and records it.
"""

from __future__ import annotations

from typing import Any

from .provenance import FromNode, Provenance, operator_marker, subscript_marker

_SLOTS = ("_sg_context", "_sg_provenance")


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


class StandIn:
    __slots__ = _SLOTS

    # `from module import *` binds nothing.
    __all__ = ()

    def __init__(self, context: Any, provenance: Provenance) -> None:
        object.__setattr__(self, "_sg_context", context)
        object.__setattr__(self, "_sg_provenance", provenance)

    def __getattr__(self, name: str) -> Any:
        # Protocol lookups (inspect, os.fspath, pickle helpers) must see "absent".
        if _is_dunder(name) or name in _SLOTS:
            raise AttributeError(name)
        return self._sg_context.read(self._sg_provenance, name)

    def __getitem__(self, key: object) -> StandIn:
        return StandIn(self._sg_context, self._sg_provenance.extend(subscript_marker(key)))

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._sg_context.call(self._sg_provenance, args, kwargs)

    def __mro_entries__(self, bases: tuple) -> tuple[type, ...]:
        return (self._sg_context.component_base(self._sg_provenance),)

    def _sg_apply(self, name: str) -> StandIn:
        return StandIn(self._sg_context, self._sg_provenance.extend(operator_marker(name)))

    # Stand-ins are immutable, so a copy is the same value.
    def __copy__(self) -> StandIn:
        return self

    def __deepcopy__(self, memo: dict) -> StandIn:
        return self

    def __reduce_ex__(self, protocol: object):
        raise TypeError(f"cannot pickle stand-in {self._sg_provenance.describe()}")

    def __setattr__(self, name: str, value: object) -> None:
        return None

    def __delattr__(self, name: str) -> None:
        return None

    def __setitem__(self, key: object, value: object) -> None:
        return None

    def __delitem__(self, key: object) -> None:
        return None

    def __contains__(self, item: object) -> bool:
        return False

    def __iter__(self):
        return iter(())

    def __len__(self) -> int:
        return 0

    def __bool__(self) -> bool:
        return True

    def __dir__(self) -> list[str]:
        return []

    def __instancecheck__(self, instance: object) -> bool:
        return False

    def __subclasscheck__(self, subclass: type) -> bool:
        return False

    def __str__(self) -> str:
        return self._sg_provenance.describe()

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)

    def __repr__(self) -> str:
        return f"StandIn({self._sg_provenance.describe()})"


def _binary_operator(name: str):
    def operator(self: StandIn, other: object) -> StandIn:
        return self._sg_apply(name)

    return operator


def _unary_operator(name: str):
    def operator(self: StandIn) -> StandIn:
        return self._sg_apply(name)

    return operator


# `==` and `!=` keep identity semantics; stand-ins stay hashable.
_BINARY_OPERATORS = (
    "add", "sub", "mul", "matmul", "truediv", "floordiv", "mod", "pow",
    "lshift", "rshift", "and", "xor", "or",
)
_COMPARISONS = ("lt", "le", "gt", "ge")
_UNARY_OPERATORS = ("neg", "pos", "invert", "abs")

for _name in _BINARY_OPERATORS:
    setattr(StandIn, f"__{_name}__", _binary_operator(_name))
    setattr(StandIn, f"__r{_name}__", _binary_operator(_name))
for _name in _COMPARISONS:
    setattr(StandIn, f"__{_name}__", _binary_operator(_name))
for _name in _UNARY_OPERATORS:
    setattr(StandIn, f"__{_name}__", _unary_operator(_name))
del _name


def is_standin(value: object) -> bool:
    return isinstance(value, StandIn)


def provenance_of(value: object) -> Provenance | None:
    """Introspection key: the provenance behind a stand-in, or None for plain data.

    Instances of guest subclasses of SDK classes count as their own node.
    """
    if isinstance(value, StandIn):
        return object.__getattribute__(value, "_sg_provenance")
    if isinstance(value, ResourceBase):
        index = value.__dict__.get("_sg_index")
        if index is not None:
            return FromNode(index)
    return None


class ResourceBase:
    """Real base class substituted when a guest subclasses an SDK class.

    ``CaptureContext.component_base`` derives a subclass bound to one capture
    context and base path. Constructing the guest's subclass records one node.
    """

    _sg_context: Any = None
    _sg_base_path: tuple[str, ...] = ()

    def __init__(self, t=None, name=None, props=None, opts=None, *args, **kwargs) -> None:
        ctx = type(self)._sg_context
        if isinstance(t, str) and t:
            class_path = (t,)
        else:
            class_path = (*type(self)._sg_base_path, type(self).__name__)
        index = ctx.record(class_path, ctx.coerce_label(name), props)
        self.__dict__["_sg_index"] = index

    def __getattr__(self, name: str) -> Any:
        if _is_dunder(name) or name == "_sg_index":
            raise AttributeError(name)
        index = self.__dict__.get("_sg_index")
        if index is None:
            raise AttributeError(name)
        return StandIn(type(self)._sg_context, FromNode(index, (name,)))

    def __copy__(self) -> ResourceBase:
        return self

    def __deepcopy__(self, memo: dict) -> ResourceBase:
        return self

    def register_outputs(self, outputs=None) -> None:
        return None
