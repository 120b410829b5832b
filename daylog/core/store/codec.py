"""
Entry codec: one log record <-> one line of compact JSON.

The store treats records as opaque mappings. ``json.dumps`` escapes control
characters inside strings, so an encoded record never contains a raw line
terminator.
"""

import json
from typing import Any, Dict, Mapping, Union

from daylog.core.store.errors import DecodingError, EncodingError

LogRecord = Dict[str, Any]

_SEPARATORS = (",", ":")


def encode(record: Mapping[str, Any]) -> bytes:
    """
    Serialize a record to a single UTF-8 line (without the terminator).

    Args:
        record: Mapping to serialize

    Returns:
        Encoded line

    Raises:
        EncodingError: If the record is not a mapping or holds values JSON
            cannot represent (objects, NaN, infinity)
    """
    if not isinstance(record, Mapping):
        raise EncodingError(f"Record must be a mapping, got {type(record).__name__}")

    try:
        text = json.dumps(
            record,
            ensure_ascii=False,
            allow_nan=False,
            separators=_SEPARATORS,
        )
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Cannot encode record: {e}") from e

    return text.encode("utf-8")


def decode(line: Union[bytes, str]) -> LogRecord:
    """
    Parse one stored line back into a record.

    Args:
        line: Encoded line, with or without surrounding whitespace

    Returns:
        Decoded record

    Raises:
        DecodingError: If the line is not valid UTF-8 JSON or not an object
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError(f"Invalid UTF-8: {e}") from e

    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise DecodingError(f"Invalid JSON: {e}") from e

    if not isinstance(record, dict):
        raise DecodingError(f"Expected a JSON object, got {type(record).__name__}")

    return record
