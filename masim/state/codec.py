"""Self-describing encoding of Values into plain builtins.

Every Value becomes a ``(kind_code, payload)`` tuple:

  - scalars carry their payload as-is (F32 carries the raw bit pattern);
  - PAIR and SEQ carry a tuple of encoded children;
  - MAP carries a tuple of ``(encoded_key, encoded_value)`` entries in
    canonical key order.

The result contains only ints, strs, bools and tuples, so it can be written
with any serializer that round-trips those types and loaded without
executing arbitrary code.
"""

from __future__ import annotations

from typing import Any

from masim.core.errors import CodecError
from masim.state.value import State, Value, ValueKind

_KINDS_BY_CODE = {kind.value: kind for kind in ValueKind}


def encode_value(value: Value) -> tuple:
    kind = value.kind
    if kind is ValueKind.F32:
        return (kind.value, value.f32_bits())
    if value.is_scalar:
        return (kind.value, value.extract(kind))
    if kind is ValueKind.PAIR:
        first, second = value.as_pair()
        return (kind.value, (encode_value(first), encode_value(second)))
    if kind is ValueKind.SEQ:
        return (kind.value, tuple(encode_value(item) for item in value.as_seq()))
    entries = sorted(value.as_map().items(), key=lambda kv: kv[0].sort_key())
    return (kind.value, tuple((encode_value(k), encode_value(v)) for k, v in entries))


def decode_value(obj: Any) -> Value:
    """Inverse of ``encode_value``.  Raises ``CodecError`` on malformed input."""
    if not isinstance(obj, (tuple, list)) or len(obj) != 2:
        raise CodecError(f"Encoded value must be a (kind, payload) pair, got {obj!r}")
    code, payload = obj
    kind = _KINDS_BY_CODE.get(code) if isinstance(code, int) and not isinstance(code, bool) else None
    if kind is None:
        raise CodecError(f"Unknown value kind code: {code!r}")

    try:
        if kind is ValueKind.I32:
            return Value.i32(payload)
        if kind is ValueKind.U32:
            return Value.u32(payload)
        if kind is ValueKind.F32:
            return Value.f32_from_bits(payload)
        if kind is ValueKind.TEXT:
            return Value.text(payload)
        if kind is ValueKind.BOOL:
            return Value.boolean(payload)
    except (TypeError, ValueError) as exc:
        raise CodecError(f"Invalid {kind.name} payload: {payload!r}") from exc

    if not isinstance(payload, (tuple, list)):
        raise CodecError(f"{kind.name} payload must be a sequence, got {payload!r}")
    if kind is ValueKind.PAIR:
        if len(payload) != 2:
            raise CodecError(f"PAIR payload must have 2 items, got {len(payload)}")
        return Value.pair(decode_value(payload[0]), decode_value(payload[1]))
    if kind is ValueKind.SEQ:
        return Value.seq(decode_value(item) for item in payload)

    entries: dict[Value, Value] = {}
    for entry in payload:
        if not isinstance(entry, (tuple, list)) or len(entry) != 2:
            raise CodecError(f"MAP entry must be a (key, value) pair, got {entry!r}")
        key = decode_value(entry[0])
        if key in entries:
            raise CodecError(f"MAP payload repeats key {key!r}")
        entries[key] = decode_value(entry[1])
    return Value.map(entries)


def encode_state(state: State) -> tuple:
    return tuple(encode_value(v) for v in state)


def decode_state(obj: Any) -> State:
    if not isinstance(obj, (tuple, list)):
        raise CodecError(f"Encoded state must be a sequence, got {obj!r}")
    return tuple(decode_value(item) for item in obj)
