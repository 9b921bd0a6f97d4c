"""Tagged values and RL state vectors."""

from masim.state.value import FrozenMap, FrozenSeq, State, Value, ValueKind, make_state, to_value

__all__ = ["FrozenMap", "FrozenSeq", "State", "Value", "ValueKind", "make_state", "to_value"]
