"""Type Schema Registry for EIP-712 structured messages.

A schema maps each struct type name to its ordered list of fields. Field
order is part of the wire contract: reordering fields changes every hash
derived from the schema.
"""

import re
from typing import Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from ..errors import SchemaMismatch, UnknownType


class Field(NamedTuple):
    """A single (name, type) member of a struct."""

    name: str
    type: str


_ARRAY_RE = re.compile(r"^(?P<base>.+)\[(?P<length>\d*)\]$")
_SIZED_RE = re.compile(r"^(?P<kind>u?int|bytes)(?P<size>\d+)$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def parse_array(type_name: str) -> Optional[Tuple[str, Optional[int]]]:
    """Split ``T[]`` / ``T[k]`` into ``(T, k)``; return None for non-arrays."""
    match = _ARRAY_RE.match(type_name)
    if match is None:
        return None
    length = match.group("length")
    return match.group("base"), int(length) if length else None


def is_atomic(type_name: str) -> bool:
    """Return True if ``type_name`` is an EIP-712 primitive type."""
    if type_name in ("address", "bool", "string", "bytes"):
        return True
    match = _SIZED_RE.match(type_name)
    if match is None:
        return False
    kind, size = match.group("kind"), int(match.group("size"))
    if kind == "bytes":
        return 1 <= size <= 32
    return 8 <= size <= 256 and size % 8 == 0


class TypeSchema(Mapping[str, Tuple[Field, ...]]):
    """Immutable registry of struct declarations.

    Example:
        ```python
        schema = TypeSchema.from_eip712({
            "Rule": [
                {"name": "ruleType", "type": "uint8"},
                {"name": "key", "type": "string"},
                {"name": "value", "type": "bytes"},
            ],
        })
        schema.encode_type("Rule")  # 'Rule(uint8 ruleType,string key,bytes value)'
        ```
    """

    def __init__(self, types: Mapping[str, Sequence[Tuple[str, str]]]):
        declared: Dict[str, Tuple[Field, ...]] = {}
        for type_name, fields in types.items():
            if not _IDENTIFIER_RE.match(type_name) or is_atomic(type_name):
                raise SchemaMismatch(f"Invalid struct type name: {type_name!r}")
            members = tuple(Field(str(name), str(ftype)) for name, ftype in fields)
            names = [field.name for field in members]
            if len(set(names)) != len(names):
                raise SchemaMismatch(f"Duplicate field name in {type_name}: {names}")
            declared[type_name] = members
        self._types = declared

    @classmethod
    def from_eip712(cls, types: Mapping[str, Sequence[Mapping[str, str]]]) -> "TypeSchema":
        """Build a schema from the JSON form used by wallets and eth-account.

        An ``EIP712Domain`` entry, if present, is ignored; domains are
        hashed with their own fixed schema.
        """
        return cls(
            {
                type_name: [(field["name"], field["type"]) for field in fields]
                for type_name, fields in types.items()
                if type_name != "EIP712Domain"
            }
        )

    def to_eip712(self) -> Dict[str, List[Dict[str, str]]]:
        """Export the schema in wallet JSON form."""
        return {
            type_name: [{"name": f.name, "type": f.type} for f in fields]
            for type_name, fields in self._types.items()
        }

    def subset(self, primary_type: str) -> "TypeSchema":
        """Return a schema holding only ``primary_type`` and its dependencies."""
        names = [primary_type] + self.dependencies(primary_type)
        return TypeSchema({name: self._types[name] for name in names})

    def __getitem__(self, type_name: str) -> Tuple[Field, ...]:
        return self._types[type_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"TypeSchema({sorted(self._types)})"

    def fields(self, type_name: str) -> Tuple[Field, ...]:
        """Return the declared fields of ``type_name``.

        Raises:
            UnknownType: If ``type_name`` is not declared
        """
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownType(f"Type {type_name!r} is not declared in the schema") from None

    def resolve(self, type_name: str) -> str:
        """Strip array suffixes and check the base type exists."""
        base = type_name
        while True:
            array = parse_array(base)
            if array is None:
                break
            base = array[0]
        if not is_atomic(base) and base not in self._types:
            raise UnknownType(f"Type {base!r} is not declared in the schema")
        return base

    def dependencies(self, primary_type: str) -> List[str]:
        """Return the struct types referenced by ``primary_type``, sorted by name."""
        found: List[str] = []
        pending = [primary_type]
        while pending:
            current = pending.pop()
            for field in self.fields(current):
                base = self.resolve(field.type)
                if is_atomic(base) or base == primary_type or base in found:
                    continue
                found.append(base)
                pending.append(base)
        return sorted(found)

    def encode_type(self, primary_type: str) -> str:
        """Return the EIP-712 ``encodeType`` string for ``primary_type``."""
        return "".join(
            name + "(" + ",".join(f"{f.type} {f.name}" for f in self.fields(name)) + ")"
            for name in [primary_type] + self.dependencies(primary_type)
        )
