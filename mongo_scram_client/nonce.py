# SPDX-License-Identifier: LGPL-3.0-or-later
"""Client nonce generation.

Characters are drawn with the `secrets` module, which is backed by the
operating system CSPRNG shared by the whole process. It is safe to call from
any number of threads concurrently and needs no locking by callers; nothing
is guaranteed about ordering between callers.
"""
import secrets

from .constants import CLIENT_NONCE_LENGTH, NONCE_CHAR_HIGH, NONCE_CHAR_LOW, NONCE_EXCLUDED_CHAR


__all__ = ['NONCE_ALPHABET', 'generate_nonce']


# Printable ASCII without the attribute separator
NONCE_ALPHABET = ''.join(
    chr(c) for c in range(NONCE_CHAR_LOW, NONCE_CHAR_HIGH + 1) if chr(c) != NONCE_EXCLUDED_CHAR
)


def generate_nonce(length: int = CLIENT_NONCE_LENGTH) -> str:
    """Return a fresh random nonce of `length` printable characters. Never reuse the result."""
    if length < 1:
        raise ValueError('Nonce length must be positive')

    return ''.join(secrets.choice(NONCE_ALPHABET) for _ in range(length))
