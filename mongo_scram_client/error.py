# SPDX-License-Identifier: LGPL-3.0-or-later
# SCRAM exception classes

SCRAM_E_INVALID_REQUEST = 1
SCRAM_E_CRYPTO_ERROR = 3
SCRAM_E_BASE64_ERROR = 4
SCRAM_E_PARSE_ERROR = 5
SCRAM_E_FORMAT_ERROR = 6
SCRAM_E_AUTH_FAILED = 7
SCRAM_E_FAULT = 8
SCRAM_E_NONCE_ERROR = 9
SCRAM_E_ITERATION_ERROR = 10

# Error code to string mapping
ERROR_CODE_NAMES = {
    SCRAM_E_INVALID_REQUEST: "SCRAM_E_INVALID_REQUEST",
    SCRAM_E_CRYPTO_ERROR: "SCRAM_E_CRYPTO_ERROR",
    SCRAM_E_BASE64_ERROR: "SCRAM_E_BASE64_ERROR",
    SCRAM_E_PARSE_ERROR: "SCRAM_E_PARSE_ERROR",
    SCRAM_E_FORMAT_ERROR: "SCRAM_E_FORMAT_ERROR",
    SCRAM_E_AUTH_FAILED: "SCRAM_E_AUTH_FAILED",
    SCRAM_E_FAULT: "SCRAM_E_FAULT",
    SCRAM_E_NONCE_ERROR: "SCRAM_E_NONCE_ERROR",
    SCRAM_E_ITERATION_ERROR: "SCRAM_E_ITERATION_ERROR",
}


class ScramError(RuntimeError):
    """
    Base class for every failure of a SCRAM conversation.

    All of these are terminal for the session that raised them. The caller
    decides whether to retry with a fresh session.

    Attributes:
        code: Integer error code (one of SCRAM_E_* constants)
        server_error: Value of the ``e=`` attribute if the server reported one
    """
    default_code = SCRAM_E_FAULT

    def __init__(self, message: str, code: int | None = None, server_error: str | None = None):
        """
        Initialize ScramError.

        Args:
            message: Error message
            code: Error code (defaults to the class' default_code)
            server_error: Error string sent by the server, if any
        """
        super().__init__(message)
        self.code = self.default_code if code is None else code
        self.server_error = server_error

    def __repr__(self):
        """Return repr of the error."""
        code_name = ERROR_CODE_NAMES.get(self.code, "UNKNOWN_ERROR")
        return f"{type(self).__name__}({code_name}: {super().__str__()})"


class InvalidNonce(ScramError):
    """The combined nonce sent by the server does not start with our client nonce."""
    default_code = SCRAM_E_NONCE_ERROR


class InvalidIterationCount(ScramError):
    """The server advertised an iteration count outside of the accepted range."""
    default_code = SCRAM_E_ITERATION_ERROR


class InvalidServerSignature(ScramError):
    """The server could not prove possession of the ServerKey."""
    default_code = SCRAM_E_AUTH_FAILED


class ProtocolViolation(ScramError):
    """A call was made out of order, or the peer sent a malformed message."""
    default_code = SCRAM_E_FORMAT_ERROR


class CryptoUnavailable(ScramError):
    """
    A required digest is not provided by the running interpreter (for example
    MD5 under a FIPS-restricted OpenSSL). This is an environment problem, not
    an authentication failure.
    """
    default_code = SCRAM_E_CRYPTO_ERROR


__all__ = [
    'ScramError',
    'InvalidNonce',
    'InvalidIterationCount',
    'InvalidServerSignature',
    'ProtocolViolation',
    'CryptoUnavailable',
    'SCRAM_E_INVALID_REQUEST',
    'SCRAM_E_CRYPTO_ERROR',
    'SCRAM_E_BASE64_ERROR',
    'SCRAM_E_PARSE_ERROR',
    'SCRAM_E_FORMAT_ERROR',
    'SCRAM_E_AUTH_FAILED',
    'SCRAM_E_FAULT',
    'SCRAM_E_NONCE_ERROR',
    'SCRAM_E_ITERATION_ERROR',
]
