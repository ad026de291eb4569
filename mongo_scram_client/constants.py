# SPDX-License-Identifier: LGPL-3.0-or-later
"""Constants and enums for SCRAM-SHA authentication."""
from enum import StrEnum


class Mechanism(StrEnum):
    """SASL mechanism names handled by this package."""
    SCRAM_SHA_1 = 'SCRAM-SHA-1'
    SCRAM_SHA_256 = 'SCRAM-SHA-256'


class ScramKey(StrEnum):
    """Attribute names used in SCRAM messages (RFC 5802, Section 5.1)."""
    USERNAME = 'n'
    NONCE = 'r'
    SALT = 's'
    ITERATIONS = 'i'
    CHANNEL_BINDING = 'c'
    PROOF = 'p'
    VERIFIER = 'v'
    ERROR = 'e'


# hashlib names of the digest backing each mechanism
HASH_ALGORITHMS = {
    Mechanism.SCRAM_SHA_1: 'sha1',
    Mechanism.SCRAM_SHA_256: 'sha256',
}

# Digest used by the legacy MONGODB-CR style password hash fed to SCRAM-SHA-1
LEGACY_HASH_ALGORITHM = 'md5'

# GS2 header: no channel binding, no authorization identity
GS2_HEADER = 'n,,'

# Iteration counts
MIN_ITERATION_COUNT = 4096  # Never accepted lower, whatever the server says
MAX_ITERATION_COUNT = 5000000  # Default ceiling, None disables it

# Client nonce
CLIENT_NONCE_LENGTH = 24
NONCE_CHAR_LOW = 33  # '!'
NONCE_CHAR_HIGH = 126  # '~'
NONCE_EXCLUDED_CHAR = ','
