"""Struct Encoder/Hasher.

Implements EIP-712 ``hashStruct``:

    hashStruct(s) = keccak256(typeHash || encodeData(s))

Nested structs are embedded by hash, arrays by the hash of their
concatenated element encodings, and ``string``/``bytes`` by the hash of
their content, so every encoded member is exactly 32 bytes.
"""

import logging
from typing import Any, Mapping

from eth_abi import encode
from eth_utils import is_address, is_hex, keccak, to_bytes, to_canonical_address

from ..errors import SchemaMismatch
from .schema import TypeSchema, is_atomic, parse_array

logger = logging.getLogger(__name__)


def type_hash(schema: TypeSchema, primary_type: str) -> bytes:
    """keccak256 of the ``encodeType`` string."""
    return keccak(text=schema.encode_type(primary_type))


def hash_struct(schema: TypeSchema, primary_type: str, message: Mapping[str, Any]) -> bytes:
    """Return the 32-byte struct hash of ``message``.

    Args:
        schema: Declared struct types
        primary_type: Type name of ``message``
        message: Field values keyed by field name

    Returns:
        32-byte digest

    Raises:
        SchemaMismatch: If a field is missing, undeclared, or holds a value
            that does not fit its declared type
        UnknownType: If a field references an undeclared type
    """
    digest = keccak(encode_data(schema, primary_type, message))
    logger.debug("hashStruct(%s) = 0x%s", primary_type, digest.hex())
    return digest


def encode_data(
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
    path: str = "",
) -> bytes:
    """Return ``typeHash || enc(field_1) || ... || enc(field_n)``."""
    path = path or primary_type
    fields = schema.fields(primary_type)
    if not isinstance(message, Mapping):
        raise SchemaMismatch(
            f"{path}: expected a mapping for {primary_type}, got {type(message).__name__}"
        )

    declared = {field.name for field in fields}
    extra = sorted(set(message) - declared)
    if extra:
        raise SchemaMismatch(f"{path}: undeclared field(s) {extra} for {primary_type}")

    parts = [type_hash(schema, primary_type)]
    for field in fields:
        if field.name not in message:
            raise SchemaMismatch(f"{path}: missing field {field.name!r}")
        parts.append(
            encode_value(schema, field.type, message[field.name], f"{path}.{field.name}")
        )
    return b"".join(parts)


def encode_value(schema: TypeSchema, type_name: str, value: Any, path: str) -> bytes:
    """Encode one member value to its 32-byte EIP-712 form."""
    array = parse_array(type_name)
    if array is not None:
        base, length = array
        if not isinstance(value, (list, tuple)):
            raise SchemaMismatch(f"{path}: expected a sequence for {type_name}")
        if length is not None and len(value) != length:
            raise SchemaMismatch(
                f"{path}: expected {length} elements for {type_name}, got {len(value)}"
            )
        schema.resolve(base)
        return keccak(
            b"".join(
                encode_value(schema, base, item, f"{path}[{index}]")
                for index, item in enumerate(value)
            )
        )

    if not is_atomic(type_name):
        schema.resolve(type_name)
        return keccak(encode_data(schema, type_name, value, path))

    if type_name == "string":
        if not isinstance(value, str):
            raise SchemaMismatch(f"{path}: expected str, got {type(value).__name__}")
        return keccak(text=value)

    if type_name == "bytes":
        return keccak(_coerce_bytes(value, path))

    if type_name.startswith("bytes"):
        size = int(type_name[5:])
        raw = _coerce_bytes(value, path)
        if len(raw) != size:
            raise SchemaMismatch(f"{path}: expected {size} bytes, got {len(raw)}")
        return raw.ljust(32, b"\x00")

    if type_name == "address":
        if isinstance(value, (bytes, bytearray)) and len(value) == 20:
            return bytes(value).rjust(32, b"\x00")
        if not isinstance(value, str) or not is_address(value):
            raise SchemaMismatch(f"{path}: invalid address {value!r}")
        return to_canonical_address(value).rjust(32, b"\x00")

    if type_name == "bool":
        if not isinstance(value, bool):
            raise SchemaMismatch(f"{path}: expected bool, got {type(value).__name__}")
        return encode(["bool"], [value])

    # uintN / intN
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaMismatch(f"{path}: expected int for {type_name}, got {type(value).__name__}")
    if type_name.startswith("uint"):
        bits = int(type_name[4:])
        low, high = 0, 2**bits - 1
    else:
        bits = int(type_name[3:])
        low, high = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    if not low <= value <= high:
        raise SchemaMismatch(f"{path}: {value} out of range for {type_name}")
    return encode([type_name], [value])


def _coerce_bytes(value: Any, path: str) -> bytes:
    """Accept raw bytes or a 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value.startswith("0x") and is_hex(value):
        return to_bytes(hexstr=value)
    raise SchemaMismatch(f"{path}: expected bytes or 0x-hex string, got {value!r}")
