# SPDX-License-Identifier: LGPL-3.0-or-later
# Text, Base64 and attribute-list handling for SCRAM messages

import binascii
import logging

from base64 import b64encode, b64decode
from collections.abc import Iterable

from .error import ProtocolViolation, SCRAM_E_BASE64_ERROR, SCRAM_E_PARSE_ERROR


__all__ = [
    'encode_utf8',
    'decode_utf8',
    'b64encode_str',
    'b64decode_str',
    'parse_message',
    'format_message',
    'require_fields',
]

logger = logging.getLogger(__name__)


def encode_utf8(text: str) -> bytes:
    return text.encode('utf-8')


def decode_utf8(data: bytes) -> str:
    """Decode a payload received from the peer. SCRAM messages are always UTF-8."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError('SCRAM payload must be bytes')

    try:
        return bytes(data).decode('utf-8')
    except UnicodeDecodeError as e:
        raise ProtocolViolation(f'Message is not valid UTF-8: {e}', SCRAM_E_PARSE_ERROR)


def b64encode_str(data: bytes | str) -> str:
    """Base64-encode `data` and return it as text for embedding in a message."""
    if isinstance(data, str):
        data = encode_utf8(data)

    return b64encode(data).decode('ascii')


def b64decode_str(value: str) -> bytes:
    try:
        return b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProtocolViolation(f'Invalid base64 encoding: {e}', SCRAM_E_BASE64_ERROR)


def parse_message(message: str) -> dict[str, str]:
    """
    Parse a SCRAM attribute list of the form `a=value,b=value,...`.

    Each field is split on its first `=` only since values (Base64 in
    particular) may contain `=` themselves. Keys are a single character. If a
    key is repeated the last occurrence wins.

    Raises:
        ProtocolViolation: If a field has no `=` or a key is not one character
    """
    attributes = {}
    for field in message.split(','):
        key, sep, value = field.partition('=')
        if not sep:
            raise ProtocolViolation(f'Malformed attribute in message: {field!r}', SCRAM_E_PARSE_ERROR)

        if len(key) != 1:
            raise ProtocolViolation(f'Invalid attribute name in message: {key!r}', SCRAM_E_PARSE_ERROR)

        if key in attributes:
            logger.debug('Duplicate attribute %r in message, keeping the last one', key)

        attributes[key] = value

    return attributes


def format_message(attributes: Iterable[tuple[str, str]]) -> str:
    """ Inverse of parse_message(). Takes (key, value) pairs in wire order. """
    return ','.join(f'{key}={value}' for key, value in attributes)


def require_fields(attributes: dict[str, str], *keys: str) -> list[str]:
    """Return values for `keys` in order, failing if any of them is absent."""
    missing = [key for key in keys if key not in attributes]
    if missing:
        raise ProtocolViolation(
            f'Missing required fields in message: {", ".join(missing)}',
            SCRAM_E_PARSE_ERROR
        )

    return [attributes[key] for key in keys]
