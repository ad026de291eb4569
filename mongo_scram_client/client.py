# SPDX-License-Identifier: LGPL-3.0-or-later
# Client side of SCRAM-SHA-1 / SCRAM-SHA-256 SASL authentication.
#
# Details of the authentication exchange between client and server
# are in RFC5802 Section 5. The SCRAM-SHA-256 variant is RFC7677.

import logging

from collections.abc import Callable
from enum import Enum

from .codec import (
    b64decode_str,
    b64encode_str,
    decode_utf8,
    encode_utf8,
    format_message,
    parse_message,
    require_fields,
)
from .constants import (
    CLIENT_NONCE_LENGTH,
    GS2_HEADER,
    MAX_ITERATION_COUNT,
    MIN_ITERATION_COUNT,
    Mechanism,
    ScramKey,
)
from .credential import MongoCredential, SecretGenerator, default_secret_generator, prepare_secret, prepare_username
from .error import (
    InvalidIterationCount,
    InvalidNonce,
    InvalidServerSignature,
    ProtocolViolation,
    ScramError,
    SCRAM_E_FAULT,
    SCRAM_E_INVALID_REQUEST,
    SCRAM_E_PARSE_ERROR,
)
from .nonce import generate_nonce
from .scram_crypto import (
    hash_algorithm,
    scram_constant_time_compare,
    scram_create_auth_message,
    scram_create_client_key,
    scram_create_server_key,
    scram_create_stored_key,
    scram_hi,
    scram_hmac,
    scram_xor_bytes,
)


__all__ = ['NonceGenerator', 'ScramState', 'ScramShaSaslClient', 'ScramShaAuthenticator']

logger = logging.getLogger(__name__)

NonceGenerator = Callable[[int], str]


class ScramState(Enum):
    AWAITING_START = 'AWAITING_START'
    AWAITING_SERVER_FIRST = 'AWAITING_SERVER_FIRST'
    AWAITING_SERVER_FINAL = 'AWAITING_SERVER_FINAL'
    COMPLETE = 'COMPLETE'
    FAILED = 'FAILED'


# SASL step reported for each state. A failed session keeps no step of its own.
_STEPS = {
    ScramState.AWAITING_START: -1,
    ScramState.AWAITING_SERVER_FIRST: 0,
    ScramState.AWAITING_SERVER_FINAL: 1,
    ScramState.COMPLETE: 2,
}


class ScramShaSaslClient:
    """
    One SCRAM conversation on behalf of a single credential.

    The caller sends the result of `start()` first (SCRAM always has an initial
    response) and then feeds every server message to `evaluate()`:

        client = ScramShaSaslClient(credential)
        payload = client.start()                # n,,n=user,r=<client nonce>
        payload = client.evaluate(server_first)  # c=biws,r=<nonce>,p=<proof>
        client.evaluate(server_final)           # verifies v=<signature>
        assert client.is_complete()

    Every state accepts exactly one operation. Any error is terminal: the
    conversation moves to FAILED and subsequent calls raise ProtocolViolation.
    Instances are not thread-safe and must not be shared between connections;
    separate instances are fully independent.

    `nonce_generator` and `secret_generator` default to the mechanism's
    standard strategies and are only meant to be replaced for testing or for
    servers with non-standard password storage.
    """
    has_initial_response = True

    def __init__(
        self,
        credential: MongoCredential,
        *,
        nonce_generator: NonceGenerator | None = None,
        secret_generator: SecretGenerator | None = None,
        min_iteration_count: int = MIN_ITERATION_COUNT,
        max_iteration_count: int | None = MAX_ITERATION_COUNT,
    ):
        if not isinstance(credential, MongoCredential):
            raise TypeError('credential must be a MongoCredential instance')

        if not isinstance(min_iteration_count, int) or min_iteration_count < MIN_ITERATION_COUNT:
            raise ValueError(f'Minimum iteration count may not be lower than {MIN_ITERATION_COUNT}')

        if max_iteration_count is not None and max_iteration_count < min_iteration_count:
            raise ValueError('Maximum iteration count is lower than minimum iteration count')

        self.credential = credential
        self.nonce_generator = nonce_generator or generate_nonce
        self.secret_generator = secret_generator or default_secret_generator(credential.mechanism)
        self.min_iteration_count = min_iteration_count
        self.max_iteration_count = max_iteration_count
        self.algorithm = hash_algorithm(credential.mechanism)

        self.__state = ScramState.AWAITING_START
        self.__client_nonce = None
        # Kept without the GS2 header since the bare message is part of the AuthMessage
        self.__client_first_bare = None
        self.__server_signature = None

        self.__transitions = {
            ScramState.AWAITING_START: (self.__client_first_message, ScramState.AWAITING_SERVER_FIRST),
            ScramState.AWAITING_SERVER_FIRST: (self.__client_final_message, ScramState.AWAITING_SERVER_FINAL),
            ScramState.AWAITING_SERVER_FINAL: (self.__validate_server_signature, ScramState.COMPLETE),
        }

    @property
    def mechanism_name(self) -> str:
        return str(self.credential.mechanism)

    @property
    def state(self) -> ScramState:
        return self.__state

    @property
    def step(self) -> int | None:
        """ SASL step last completed: -1 before start(), 2 once complete, None after a failure. """
        return _STEPS.get(self.__state)

    @property
    def client_nonce(self) -> str | None:
        return self.__client_nonce

    def is_complete(self) -> bool:
        return self.__state is ScramState.COMPLETE

    def start(self) -> bytes:
        """Return the client-first-message. Must be sent before anything is received."""
        if self.__state is not ScramState.AWAITING_START and self.__state in self.__transitions:
            self.__fail(ProtocolViolation(
                f'{self.mechanism_name}: conversation has already been started', SCRAM_E_INVALID_REQUEST
            ))

        return self.__advance(None)

    def evaluate(self, challenge: bytes) -> bytes:
        """Process a message received from the server and return the response to send."""
        if self.__state is ScramState.AWAITING_START:
            self.__fail(ProtocolViolation(
                f'{self.mechanism_name}: start() must be called before evaluate()', SCRAM_E_INVALID_REQUEST
            ))

        return self.__advance(challenge)

    def __advance(self, challenge: bytes | None) -> bytes:
        transition = self.__transitions.get(self.__state)
        if transition is None:
            # COMPLETE and FAILED are terminal and stay as they are
            raise ProtocolViolation(
                f'Too many steps involved in the {self.mechanism_name} negotiation.', SCRAM_E_FAULT
            )

        handler, next_state = transition
        try:
            response = handler(challenge)
        except ScramError as e:
            self.__fail(e)
        except Exception:
            self.__state = ScramState.FAILED
            raise

        logger.debug('%s: %s -> %s', self.mechanism_name, self.__state.name, next_state.name)
        self.__state = next_state
        return response

    def __fail(self, error: ScramError):
        if self.__state is not ScramState.FAILED:
            logger.warning('%s authentication for %r failed: %s', self.mechanism_name, self.credential.username, error)

        self.__state = ScramState.FAILED
        raise error

    def __parse_challenge(self, challenge: bytes) -> tuple[str, dict[str, str]]:
        message = decode_utf8(challenge)
        attributes = parse_message(message)
        if ScramKey.ERROR in attributes:
            raise ProtocolViolation(
                f'Server reported an error: {attributes[ScramKey.ERROR]}',
                server_error=attributes[ScramKey.ERROR]
            )

        return message, attributes

    def __client_first_message(self, challenge: None) -> bytes:
        """
        n,,n=<username>,r=<nonce>

        Only the bare part (without the GS2 header) is kept for the AuthMessage.
        """
        self.__client_nonce = self.nonce_generator(CLIENT_NONCE_LENGTH)
        self.__client_first_bare = format_message([
            (ScramKey.USERNAME, prepare_username(self.credential)),
            (ScramKey.NONCE, self.__client_nonce),
        ])
        return encode_utf8(GS2_HEADER + self.__client_first_bare)

    def __client_final_message(self, challenge: bytes) -> bytes:
        """
        RFC5802 section 3 (SCRAM Algorithm Overview):

        SaltedPassword  := Hi(Normalize(password), salt, i)
        ClientKey       := HMAC(SaltedPassword, "Client Key")
        StoredKey       := H(ClientKey)
        AuthMessage     := client-first-message-bare + "," +
                           server-first-message + "," +
                           client-final-message-without-proof
        ClientSignature := HMAC(StoredKey, AuthMessage)
        ClientProof     := ClientKey XOR ClientSignature
        ServerKey       := HMAC(SaltedPassword, "Server Key")
        ServerSignature := HMAC(ServerKey, AuthMessage)
        """
        server_first, attributes = self.__parse_challenge(challenge)
        # The nonce is checked before anything else in the message is looked at.
        # Nonces are public, no constant-time compare
        nonce, = require_fields(attributes, ScramKey.NONCE)
        if not nonce.startswith(self.__client_nonce):
            raise InvalidNonce('Server sent an invalid nonce.')

        salt_b64, iterations_str = require_fields(attributes, ScramKey.SALT, ScramKey.ITERATIONS)

        if not (iterations_str.isascii() and iterations_str.isdigit()):
            raise ProtocolViolation(
                f'{iterations_str!r}: invalid iteration count in server first message', SCRAM_E_PARSE_ERROR
            )

        iterations = int(iterations_str)

        if iterations < self.min_iteration_count:
            raise InvalidIterationCount(
                f'Invalid iteration count: {iterations} is lower than {self.min_iteration_count}.'
            )

        if self.max_iteration_count is not None and iterations > self.max_iteration_count:
            raise InvalidIterationCount(
                f'Invalid iteration count: {iterations} exceeds maximum of {self.max_iteration_count}.'
            )

        salt = b64decode_str(salt_b64)

        client_final_without_proof = format_message([
            (ScramKey.CHANNEL_BINDING, b64encode_str(GS2_HEADER)),
            (ScramKey.NONCE, nonce),
        ])
        auth_message = encode_utf8(scram_create_auth_message(
            self.__client_first_bare, server_first, client_final_without_proof
        ))

        secret = prepare_secret(self.credential, self.secret_generator)
        salted_password = scram_hi(secret, salt, iterations, self.algorithm)
        client_key = scram_create_client_key(salted_password, self.algorithm)
        server_key = scram_create_server_key(salted_password, self.algorithm)
        stored_key = scram_create_stored_key(client_key, self.algorithm)

        client_signature = scram_hmac(stored_key, auth_message, self.algorithm)
        client_proof = scram_xor_bytes(client_key, client_signature)

        # Checked against the server-final-message in the next step
        self.__server_signature = scram_hmac(server_key, auth_message, self.algorithm)

        return encode_utf8(format_message([
            (ScramKey.CHANNEL_BINDING, b64encode_str(GS2_HEADER)),
            (ScramKey.NONCE, nonce),
            (ScramKey.PROOF, b64encode_str(client_proof)),
        ]))

    def __validate_server_signature(self, challenge: bytes) -> bytes:
        """
        Verify that the server has access to the ServerKey. The challenge is
        returned unchanged since nothing more needs to be sent.
        """
        _, attributes = self.__parse_challenge(challenge)
        verifier, = require_fields(attributes, ScramKey.VERIFIER)

        if not scram_constant_time_compare(b64decode_str(verifier), self.__server_signature):
            raise InvalidServerSignature('Server signature was invalid.')

        return challenge

    def wrap(self, outgoing: bytes) -> bytes:
        raise NotImplementedError('SCRAM does not negotiate a security layer')

    def unwrap(self, incoming: bytes) -> bytes:
        raise NotImplementedError('SCRAM does not negotiate a security layer')

    def dispose(self):
        pass


class ScramShaAuthenticator:
    """
    Factory of SCRAM conversations for a credential. Each authentication
    attempt must use a new client from `create_sasl_client()` so that a fresh
    nonce is generated; whether and how often to retry is up to the caller.
    """
    def __init__(
        self,
        credential: MongoCredential,
        *,
        nonce_generator: NonceGenerator | None = None,
        secret_generator: SecretGenerator | None = None,
        min_iteration_count: int = MIN_ITERATION_COUNT,
        max_iteration_count: int | None = MAX_ITERATION_COUNT,
    ):
        if not isinstance(credential, MongoCredential):
            raise TypeError('credential must be a MongoCredential instance')

        self.credential = credential
        self.nonce_generator = nonce_generator
        self.secret_generator = secret_generator
        self.min_iteration_count = min_iteration_count
        self.max_iteration_count = max_iteration_count

    @property
    def mechanism(self) -> Mechanism:
        return self.credential.mechanism

    @property
    def mechanism_name(self) -> str:
        return str(self.credential.mechanism)

    def create_sasl_client(self) -> ScramShaSaslClient:
        return ScramShaSaslClient(
            self.credential,
            nonce_generator=self.nonce_generator,
            secret_generator=self.secret_generator,
            min_iteration_count=self.min_iteration_count,
            max_iteration_count=self.max_iteration_count,
        )
