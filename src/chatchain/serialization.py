# pyright: standard

import msgspec


def to_json(obj: object) -> bytes:
    """Encode an object to compact JSON bytes using msgspec."""
    return msgspec.json.encode(obj)


def from_json[T](type_spec: type[T], data: bytes | str) -> T:
    """Decode JSON data (bytes or str) into the specified type."""
    return msgspec.json.decode(data, type=type_spec)
