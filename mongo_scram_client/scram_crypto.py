# SPDX-License-Identifier: LGPL-3.0-or-later
# Pure python implementation of SCRAM cryptographic operations (RFC 5802, Section 3)

import hmac
import hashlib

from .constants import HASH_ALGORITHMS, Mechanism
from .error import CryptoUnavailable


__all__ = [
    'hash_algorithm',
    'scram_hi',
    'scram_h',
    'scram_hmac',
    'scram_create_client_key',
    'scram_create_server_key',
    'scram_create_stored_key',
    'scram_xor_bytes',
    'scram_constant_time_compare',
    'scram_create_auth_message',
]


def hash_algorithm(mechanism: Mechanism) -> str:
    """Return the hashlib name of the digest used by `mechanism`."""
    try:
        return HASH_ALGORITHMS[mechanism]
    except KeyError:
        raise ValueError(f'{mechanism}: unsupported SCRAM mechanism') from None


def _check_algorithm(algorithm: str) -> None:
    try:
        hashlib.new(algorithm)
    except (ValueError, TypeError) as e:
        raise CryptoUnavailable(f"Algorithm for '{algorithm}' could not be found: {e}") from e


def scram_hi(secret: bytes, salt: bytes, iterations: int, algorithm: str) -> bytes:
    """
    Perform the Hi() key derivation from RFC 5802 Section 2.2.

        U1   := HMAC(str, salt + INT(1))
        Ui   := HMAC(str, Ui-1)
        Hi() := U1 XOR U2 XOR ... XOR Ui

    This is exactly PBKDF2 with HMAC as the PRF and a derived key length of
    one digest block, so the fold is delegated to hashlib which computes it
    incrementally. Callers are responsible for enforcing the minimum
    iteration count; Hi itself accepts any positive value.

    Args:
        secret: Normalized password (or legacy password digest) as bytes
        salt: Salt decoded from the server-first-message
        iterations: Number of HMAC rounds
        algorithm: hashlib digest name

    Returns:
        SaltedPassword, one digest in length

    Raises:
        ValueError: If iterations is not positive
        CryptoUnavailable: If the digest is not available
    """
    if not isinstance(iterations, int):
        raise TypeError('Iterations must be an integer')

    if iterations < 1:
        raise ValueError('Iterations must be a positive integer')

    _check_algorithm(algorithm)
    return hashlib.pbkdf2_hmac(algorithm, bytes(secret), bytes(salt), iterations)


def scram_h(data: bytes, algorithm: str) -> bytes:
    """H(str) from RFC 5802: a single application of the mechanism's digest."""
    try:
        return hashlib.new(algorithm, bytes(data)).digest()
    except (ValueError, TypeError) as e:
        raise CryptoUnavailable(f"Algorithm for '{algorithm}' could not be found: {e}") from e


def scram_hmac(key: bytes, data: bytes, algorithm: str) -> bytes:
    """HMAC(key, str) from RFC 5802 using the mechanism's digest."""
    _check_algorithm(algorithm)
    return hmac.digest(bytes(key), bytes(data), algorithm)


def scram_create_client_key(salted_password: bytes, algorithm: str) -> bytes:
    """ClientKey := HMAC(SaltedPassword, "Client Key")"""
    return scram_hmac(salted_password, b'Client Key', algorithm)


def scram_create_server_key(salted_password: bytes, algorithm: str) -> bytes:
    """ServerKey := HMAC(SaltedPassword, "Server Key")"""
    return scram_hmac(salted_password, b'Server Key', algorithm)


def scram_create_stored_key(client_key: bytes, algorithm: str) -> bytes:
    """
    StoredKey := H(ClientKey)

    The stored key is what a server keeps instead of the password.
    """
    return scram_h(client_key, algorithm)


def scram_xor_bytes(a: bytes, b: bytes) -> bytes:
    """
    XOR two byte strings of equal length.

    Used for ClientProof := ClientKey XOR ClientSignature, and by the server
    to recover ClientKey from the proof.

    Raises:
        ValueError: If the lengths differ
    """
    if len(a) != len(b):
        raise ValueError('Byte array sizes do not match')

    return bytes(x ^ y for x, y in zip(a, b))


def scram_constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings without leaking the position of the first
    mismatch through timing. Differing lengths simply compare unequal.
    """
    return hmac.compare_digest(bytes(a), bytes(b))


def scram_create_auth_message(
    client_first_bare: str,
    server_first_msg: str,
    client_final_without_proof: str
) -> str:
    """
    AuthMessage := client-first-message-bare + "," +
                   server-first-message + "," +
                   client-final-message-without-proof
    """
    if not client_first_bare or not server_first_msg or not client_final_without_proof:
        raise ValueError('AuthMessage components must not be empty')

    return f'{client_first_bare},{server_first_msg},{client_final_without_proof}'
