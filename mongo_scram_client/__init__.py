# SPDX-License-Identifier: LGPL-3.0-or-later
# Client side SCRAM-SHA-1 / SCRAM-SHA-256 SASL authentication for MongoDB
# servers. Transport, mechanism negotiation and retries belong to the caller.

from .error import (
    ScramError,
    InvalidNonce,
    InvalidIterationCount,
    InvalidServerSignature,
    ProtocolViolation,
    CryptoUnavailable,
    SCRAM_E_INVALID_REQUEST,
    SCRAM_E_CRYPTO_ERROR,
    SCRAM_E_BASE64_ERROR,
    SCRAM_E_PARSE_ERROR,
    SCRAM_E_FORMAT_ERROR,
    SCRAM_E_AUTH_FAILED,
    SCRAM_E_FAULT,
    SCRAM_E_NONCE_ERROR,
    SCRAM_E_ITERATION_ERROR,
)

from .constants import (
    Mechanism,
    GS2_HEADER,
    MIN_ITERATION_COUNT,
    MAX_ITERATION_COUNT,
    CLIENT_NONCE_LENGTH,
)

from .credential import (
    MongoCredential,
    escape_username,
    legacy_password_digest,
)

from .saslprep import saslprep
from .nonce import generate_nonce

from .scram_crypto import (
    scram_hi,
    scram_h,
    scram_hmac,
    scram_create_client_key,
    scram_create_server_key,
    scram_create_stored_key,
    scram_xor_bytes,
    scram_constant_time_compare,
    scram_create_auth_message,
)

from .client import ScramState, ScramShaSaslClient, ScramShaAuthenticator
from .server import ScramServerData, ScramServer


__all__ = [
    # Conversation
    'ScramState',
    'ScramShaSaslClient',
    'ScramShaAuthenticator',
    'MongoCredential',
    'Mechanism',

    # Reference server
    'ScramServerData',
    'ScramServer',

    # Exceptions
    'ScramError',
    'InvalidNonce',
    'InvalidIterationCount',
    'InvalidServerSignature',
    'ProtocolViolation',
    'CryptoUnavailable',

    # Normalization and nonces
    'saslprep',
    'escape_username',
    'legacy_password_digest',
    'generate_nonce',

    # Cryptographic functions
    'scram_hi',
    'scram_h',
    'scram_hmac',
    'scram_create_client_key',
    'scram_create_server_key',
    'scram_create_stored_key',
    'scram_xor_bytes',
    'scram_constant_time_compare',
    'scram_create_auth_message',

    # Error codes
    'SCRAM_E_INVALID_REQUEST',
    'SCRAM_E_CRYPTO_ERROR',
    'SCRAM_E_BASE64_ERROR',
    'SCRAM_E_PARSE_ERROR',
    'SCRAM_E_FORMAT_ERROR',
    'SCRAM_E_AUTH_FAILED',
    'SCRAM_E_FAULT',
    'SCRAM_E_NONCE_ERROR',
    'SCRAM_E_ITERATION_ERROR',

    # Constants
    'GS2_HEADER',
    'MIN_ITERATION_COUNT',
    'MAX_ITERATION_COUNT',
    'CLIENT_NONCE_LENGTH',
]
