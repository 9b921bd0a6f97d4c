"""Tagged dynamic values used to build scenario-defined RL states.

A ``Value`` is a closed union over eight variants (see ``ValueKind``).  A
``State`` is an ordered tuple of Values and forms half of every Q-table key,
so equality and hashing here must be exact:

  - the variant is part of both equality and the hash, so ``I32(1)`` and
    ``U32(1)`` are different keys;
  - F32 payloads are stored as their raw 32-bit pattern and compared by bits,
    trading NaN/epsilon semantics for exact reproducibility;
  - MAP entries are folded into the hash in a canonical sorted order.

Values are immutable.  Reading a Value as the wrong variant raises
``TypeMismatch``, which scenario code can catch.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping

import numpy as np

from masim.core.errors import TypeMismatch

_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1
_U32_MAX = 2**32 - 1


class ValueKind(Enum):
    """Variant discriminant.  The integer codes are also the on-disk tags."""

    I32 = 0
    U32 = 1
    F32 = 2
    TEXT = 3
    BOOL = 4
    PAIR = 5
    SEQ = 6
    MAP = 7


_SCALAR_KINDS = frozenset(
    {ValueKind.I32, ValueKind.U32, ValueKind.F32, ValueKind.TEXT, ValueKind.BOOL}
)


def _check_int(n: Any, kind: ValueKind) -> int:
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise TypeError(f"{kind.name} requires an int, got {type(n).__name__}")
    n = int(n)
    low, high = (_I32_MIN, _I32_MAX) if kind is ValueKind.I32 else (0, _U32_MAX)
    if not low <= n <= high:
        raise ValueError(f"{n} is out of range for {kind.name} [{low}, {high}]")
    return n


def float_to_bits(x: float) -> int:
    return int(np.array(x, dtype=np.float32).view(np.uint32))


def bits_to_float(bits: int) -> float:
    return float(np.array(bits, dtype=np.uint32).view(np.float32))


# ---------------------------------------------------------------------------
# Hashable native forms of composite map keys
# ---------------------------------------------------------------------------

class FrozenSeq(tuple):
    """Native form of a SEQ used as a map key.

    Equal only to another FrozenSeq of the same items, so a SEQ key never
    collides with the plain tuple a PAIR key becomes.
    """

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and tuple.__eq__(self, other)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __hash__(self) -> int:
        return hash((type(self).__name__, tuple(self)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({tuple(self)!r})"


class FrozenMap(FrozenSeq):
    """Native form of a MAP used as a map key: ``(key, value)`` items in
    canonical key order."""

    __slots__ = ()


class Value:
    """Immutable tagged value.  Build with the classmethods or ``to_value``."""

    __slots__ = ("_kind", "_payload", "_hash")

    def __init__(self, kind: ValueKind, payload: Any) -> None:
        self._kind = kind
        self._payload = payload
        self._hash: int | None = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def i32(cls, n: int) -> Value:
        return cls(ValueKind.I32, _check_int(n, ValueKind.I32))

    @classmethod
    def u32(cls, n: int) -> Value:
        return cls(ValueKind.U32, _check_int(n, ValueKind.U32))

    @classmethod
    def f32(cls, x: float) -> Value:
        if isinstance(x, bool) or not isinstance(x, (int, float, np.floating, np.integer)):
            raise TypeError(f"F32 requires a number, got {type(x).__name__}")
        return cls(ValueKind.F32, float_to_bits(float(x)))

    @classmethod
    def f32_from_bits(cls, bits: int) -> Value:
        return cls(ValueKind.F32, _check_int(bits, ValueKind.U32))

    @classmethod
    def text(cls, s: str) -> Value:
        if not isinstance(s, str):
            raise TypeError(f"TEXT requires a str, got {type(s).__name__}")
        return cls(ValueKind.TEXT, s)

    @classmethod
    def boolean(cls, b: bool) -> Value:
        if not isinstance(b, (bool, np.bool_)):
            raise TypeError(f"BOOL requires a bool, got {type(b).__name__}")
        return cls(ValueKind.BOOL, bool(b))

    @classmethod
    def pair(cls, first: Any, second: Any) -> Value:
        return cls(ValueKind.PAIR, (to_value(first), to_value(second)))

    @classmethod
    def seq(cls, items: Iterable[Any]) -> Value:
        return cls(ValueKind.SEQ, tuple(to_value(item) for item in items))

    @classmethod
    def map(cls, mapping: Mapping[Any, Any]) -> Value:
        return cls(
            ValueKind.MAP,
            {to_value(k): to_value(v) for k, v in mapping.items()},
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def kind(self) -> ValueKind:
        return self._kind

    @property
    def is_scalar(self) -> bool:
        return self._kind in _SCALAR_KINDS

    def _expect(self, kind: ValueKind) -> Any:
        if self._kind is not kind:
            raise TypeMismatch(kind, self._kind)
        return self._payload

    # ------------------------------------------------------------------
    # Typed extraction
    # ------------------------------------------------------------------

    def as_i32(self) -> int:
        return self._expect(ValueKind.I32)

    def as_u32(self) -> int:
        return self._expect(ValueKind.U32)

    def as_f32(self) -> float:
        return bits_to_float(self._expect(ValueKind.F32))

    def f32_bits(self) -> int:
        return self._expect(ValueKind.F32)

    def as_text(self) -> str:
        return self._expect(ValueKind.TEXT)

    def as_bool(self) -> bool:
        return self._expect(ValueKind.BOOL)

    def as_pair(self) -> tuple[Value, Value]:
        return self._expect(ValueKind.PAIR)

    def as_seq(self) -> tuple[Value, ...]:
        return self._expect(ValueKind.SEQ)

    def as_map(self) -> dict[Value, Value]:
        """Return a copy of the entries; the Value itself stays immutable."""
        return dict(self._expect(ValueKind.MAP))

    def extract(self, kind: ValueKind) -> Any:
        """Generic extraction: scalars come back native, composites recursively."""
        self._expect(kind)
        return self.to_native()

    def to_native(self) -> Any:
        """Plain Python form: PAIR -> tuple, SEQ -> list, MAP -> dict.

        Composite map keys become hashable: PAIR -> tuple, SEQ -> ``FrozenSeq``,
        MAP -> ``FrozenMap``.  ``to_value`` reverses all of them.  A MAP whose
        keys are distinct Values but equal natives (``True`` and ``1``, ``0.0``
        and ``-0.0``) has no native form and raises ``ValueError``.
        """
        kind = self._kind
        if kind is ValueKind.F32:
            return bits_to_float(self._payload)
        if kind in _SCALAR_KINDS:
            return self._payload
        if kind is ValueKind.PAIR:
            first, second = self._payload
            return (first.to_native(), second.to_native())
        if kind is ValueKind.SEQ:
            return [item.to_native() for item in self._payload]
        native: dict[Any, Any] = {}
        for k, v in self._sorted_entries():
            key = _hashable_native(k)
            if key in native:
                raise ValueError(f"Map key {k!r} has the same native form as another key")
            native[key] = v.to_native()
        return native

    # ------------------------------------------------------------------
    # Map helpers
    # ------------------------------------------------------------------

    def get(self, key: Any, default: Any = None) -> Any:
        """Look up ``key`` in a MAP value."""
        return self._expect(ValueKind.MAP).get(to_value(key), default)

    def with_entry(self, key: Any, value: Any) -> Value:
        """Return a new MAP value with ``key`` set to ``value``."""
        entries = dict(self._expect(ValueKind.MAP))
        entries[to_value(key)] = to_value(value)
        return Value(ValueKind.MAP, entries)

    # ------------------------------------------------------------------
    # Ordering, equality, hashing
    # ------------------------------------------------------------------

    def sort_key(self) -> tuple:
        """Total order over Values: variant code first, then payload."""
        kind = self._kind
        if kind in _SCALAR_KINDS:
            return (kind.value, self._payload)
        if kind is ValueKind.MAP:
            return (kind.value, tuple(
                (k.sort_key(), v.sort_key()) for k, v in self._sorted_entries()
            ))
        return (kind.value, tuple(item.sort_key() for item in self._payload))

    def _sorted_entries(self) -> list[tuple[Value, Value]]:
        return sorted(self._payload.items(), key=lambda kv: kv[0].sort_key())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._kind is other._kind and self._payload == other._payload

    def __hash__(self) -> int:
        if self._hash is None:
            if self._kind is ValueKind.MAP:
                folded = tuple(self._sorted_entries())
            else:
                folded = self._payload
            self._hash = hash((self._kind.value, folded))
        return self._hash

    def __repr__(self) -> str:
        kind = self._kind
        if kind is ValueKind.F32:
            return f"Value.F32({bits_to_float(self._payload)!r})"
        if kind is ValueKind.MAP:
            inner = ", ".join(f"{k!r}: {v!r}" for k, v in self._sorted_entries())
            return f"Value.MAP({{{inner}}})"
        return f"Value.{kind.name}({self._payload!r})"


State = tuple[Value, ...]


def _hashable_native(value: Value) -> Any:
    if value.is_scalar:
        return value.to_native()
    if value.kind is ValueKind.PAIR:
        first, second = value.as_pair()
        return (_hashable_native(first), _hashable_native(second))
    if value.kind is ValueKind.SEQ:
        return FrozenSeq(_hashable_native(item) for item in value.as_seq())
    return FrozenMap(
        (_hashable_native(k), _hashable_native(v)) for k, v in value._sorted_entries()
    )


def to_value(obj: Any, *, int_kind: ValueKind = ValueKind.I32) -> Value:
    """Build a Value from a native object, inferring the variant.

    bool -> BOOL, int -> ``int_kind`` (I32 or U32), float -> F32,
    str -> TEXT, ``FrozenMap`` -> MAP, ``FrozenSeq`` -> SEQ, 2-tuple -> PAIR,
    other tuples and lists -> SEQ, dict -> MAP.  Composites convert
    recursively with the same ``int_kind``.
    """
    if isinstance(obj, Value):
        return obj
    if isinstance(obj, (bool, np.bool_)):
        return Value.boolean(obj)
    if isinstance(obj, (int, np.integer)):
        if int_kind is ValueKind.U32:
            return Value.u32(obj)
        if int_kind is ValueKind.I32:
            return Value.i32(obj)
        raise ValueError(f"int_kind must be I32 or U32, got {int_kind.name}")
    if isinstance(obj, (float, np.floating)):
        return Value.f32(obj)
    if isinstance(obj, str):
        return Value.text(obj)
    if isinstance(obj, FrozenMap):
        return Value(
            ValueKind.MAP,
            {to_value(k, int_kind=int_kind): to_value(v, int_kind=int_kind) for k, v in obj},
        )
    if isinstance(obj, FrozenSeq):
        return Value(ValueKind.SEQ, tuple(to_value(item, int_kind=int_kind) for item in obj))
    if isinstance(obj, tuple) and len(obj) == 2:
        return Value(
            ValueKind.PAIR,
            (to_value(obj[0], int_kind=int_kind), to_value(obj[1], int_kind=int_kind)),
        )
    if isinstance(obj, (tuple, list)):
        return Value(ValueKind.SEQ, tuple(to_value(item, int_kind=int_kind) for item in obj))
    if isinstance(obj, Mapping):
        return Value(
            ValueKind.MAP,
            {
                to_value(k, int_kind=int_kind): to_value(v, int_kind=int_kind)
                for k, v in obj.items()
            },
        )
    raise TypeError(f"Cannot convert {type(obj).__name__} to a Value")


def make_state(*items: Any) -> State:
    """Build a State from Values or natives, preserving order."""
    return tuple(to_value(item) for item in items)
