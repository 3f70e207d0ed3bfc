from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class ValidationError(Exception):
    """Raised when a value does not conform to a Schema."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


@dataclass(frozen=True)
class FieldSpec:
    type: str = "string"
    enum: Optional[Tuple[Any, ...]] = None
    description: Optional[str] = None
    required: bool = False

    def __post_init__(self) -> None:
        if self.type not in _TYPE_CHECKS:
            raise ValueError(f"Unsupported field type: {self.type}")
        if self.enum is not None:
            if not self.enum:
                raise ValueError("enum must contain at least one allowed value")
            object.__setattr__(self, "enum", tuple(self.enum))

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.description:
            out["description"] = self.description
        return out


@dataclass(frozen=True)
class Schema:
    """Structural description of an object: named fields in declaration order."""

    fields: Tuple[Tuple[str, FieldSpec], ...] = ()

    @classmethod
    def of(cls, **fields: FieldSpec) -> "Schema":
        return cls(tuple(fields.items()))

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: spec.to_json() for name, spec in self.fields},
            "required": [name for name, spec in self.fields if spec.required],
        }

    def restrict(self, names: Iterable[str]) -> "Schema":
        """Return a schema holding only the named fields, in declaration order."""
        wanted = set(names)
        return Schema(tuple((n, s) for n, s in self.fields if n in wanted))


def check(value: Any, schema: Schema) -> Tuple[bool, List[str]]:
    """Collect every problem with ``value``; returns (ok, errors)."""
    if not isinstance(value, Mapping):
        return False, [f"expected an object, got {type(value).__name__}"]
    errors: List[str] = []
    for name, spec in schema.fields:
        if name not in value or value.get(name) is None:
            if spec.required:
                errors.append(f"Missing required field: {name}")
            continue
        val = value[name]
        if not _TYPE_CHECKS[spec.type](val):
            errors.append(f"{name} expected {spec.type}, got {type(val).__name__}")
            continue
        if spec.enum is not None and val not in spec.enum:
            allowed = ", ".join(str(v) for v in spec.enum)
            errors.append(f"Invalid value {val!r} for {name}: must be one of {allowed}")
    return (len(errors) == 0), errors


def validate(value: Any, schema: Schema) -> Dict[str, Any]:
    """Validate ``value`` against ``schema``.

    Returns a new dict with the declared fields that were supplied. Undeclared
    keys are dropped. Raises ValidationError listing every problem found.
    """
    ok, errors = check(value, schema)
    if not ok:
        raise ValidationError(errors)
    return {name: value[name] for name, _ in schema.fields if value.get(name) is not None}
