# SPDX-License-Identifier: LGPL-3.0-or-later
# Reference implementation of the server side of SCRAM-SHA-1 / SCRAM-SHA-256

import logging
import secrets

from dataclasses import dataclass

from .codec import (
    b64decode_str,
    b64encode_str,
    decode_utf8,
    encode_utf8,
    format_message,
    parse_message,
    require_fields,
)
from .constants import GS2_HEADER, MIN_ITERATION_COUNT, Mechanism, ScramKey
from .credential import (
    MongoCredential,
    SecretGenerator,
    default_secret_generator,
    prepare_secret,
    unescape_username,
)
from .error import ProtocolViolation
from .nonce import generate_nonce
from .scram_crypto import (
    hash_algorithm,
    scram_constant_time_compare,
    scram_create_auth_message,
    scram_create_client_key,
    scram_create_server_key,
    scram_create_stored_key,
    scram_h,
    scram_hi,
    scram_hmac,
    scram_xor_bytes,
)


__all__ = ['ScramServerData', 'ScramServer']

logger = logging.getLogger(__name__)


@dataclass
class ScramServerData:
    """
    Dataclass containing required information for SCRAM server to authenticate a credential.

    mechanism - SCRAM mechanism the keys were derived for
    salt - random octet string that is combined with key before applying one-way encryption function.
    iteration_count - number of iterations of the hash function
    stored_key - output of H(HMAC(SaltedPassword, "Client Key"))
    server_key - output of HMAC(SaltedPassword, "Server Key")
    """
    mechanism: Mechanism
    salt: bytes
    iteration_count: int
    stored_key: bytes
    server_key: bytes

    @classmethod
    def from_credential(
        cls,
        credential: MongoCredential,
        *,
        salt: bytes | None = None,
        iteration_count: int = MIN_ITERATION_COUNT,
        secret_generator: SecretGenerator | None = None,
    ) -> 'ScramServerData':
        """
        Derive what a server stores for `credential`. The plain password is
        not kept: with only StoredKey and ServerKey the server can verify a
        client but cannot impersonate it.
        """
        algorithm = hash_algorithm(credential.mechanism)
        salt = secrets.token_bytes(16) if salt is None else salt
        secret = prepare_secret(credential, secret_generator or default_secret_generator(credential.mechanism))

        salted_password = scram_hi(secret, salt, iteration_count, algorithm)
        client_key = scram_create_client_key(salted_password, algorithm)
        return cls(
            mechanism=credential.mechanism,
            salt=salt,
            iteration_count=iteration_count,
            stored_key=scram_create_stored_key(client_key, algorithm),
            server_key=scram_create_server_key(salted_password, algorithm),
        )


class ScramServer:
    """
    Reference implementation of the server portion of the authentication protocol. This can
    be used for development and testing purposes. It assumes that the server has already looked
    up the ScramServerData for the user that is authenticating.
    """

    def __init__(self, data: ScramServerData, *, server_nonce: str | None = None):
        self.data = data
        self.algorithm = hash_algorithm(data.mechanism)
        self.server_nonce = server_nonce
        self.username = None
        self.client_first_bare = None
        self.server_first_message = None
        self.nonce = None

    def get_server_first_message(self, client_first: bytes) -> bytes:
        """
        We've received message from client including username and nonce. We respond
        with the iterations and salt needed to proceed with authentication (as well as our server
        nonce, which MUST be unique to this conversation).
        """
        message = decode_utf8(client_first)
        if not message.startswith(GS2_HEADER):
            raise ProtocolViolation('Channel binding and authorization identities are not supported')

        # keep copy of the bare message since it will be used to validate the ClientProof
        self.client_first_bare = message[len(GS2_HEADER):]
        username, client_nonce = require_fields(
            parse_message(self.client_first_bare), ScramKey.USERNAME, ScramKey.NONCE
        )
        self.username = unescape_username(username)
        self.nonce = client_nonce + (self.server_nonce or generate_nonce())

        self.server_first_message = format_message([
            (ScramKey.NONCE, self.nonce),
            (ScramKey.SALT, b64encode_str(self.data.salt)),
            (ScramKey.ITERATIONS, str(self.data.iteration_count)),
        ])
        return encode_utf8(self.server_first_message)

    def get_server_final_message(self, client_final: bytes) -> bytes | None:
        """
        Validate the ClientProof that the client generated to show it has access to
        the credential. Returns the server-final-message on success or None on failure.

        The server computes the ClientSignature and XORs it with the ClientProof to
        recover the ClientKey, then compares its digest with the StoredKey. See RFC5802.
        """
        if self.server_first_message is None:
            raise ProtocolViolation('Client final message received before client first message')

        attributes = parse_message(decode_utf8(client_final))
        channel_binding, nonce, proof = require_fields(
            attributes, ScramKey.CHANNEL_BINDING, ScramKey.NONCE, ScramKey.PROOF
        )

        if b64decode_str(channel_binding) != encode_utf8(GS2_HEADER) or nonce != self.nonce:
            logger.debug('Client final message for %r does not match this conversation', self.username)
            return None

        client_final_without_proof = format_message([
            (ScramKey.CHANNEL_BINDING, channel_binding),
            (ScramKey.NONCE, nonce),
        ])
        auth_message = encode_utf8(scram_create_auth_message(
            self.client_first_bare, self.server_first_message, client_final_without_proof
        ))

        client_proof = b64decode_str(proof)
        client_signature = scram_hmac(self.data.stored_key, auth_message, self.algorithm)
        if len(client_proof) != len(client_signature):
            return None

        client_key = scram_xor_bytes(client_proof, client_signature)
        if not scram_constant_time_compare(scram_h(client_key, self.algorithm), self.data.stored_key):
            logger.debug('Client proof for %r failed verification', self.username)
            return None

        server_signature = scram_hmac(self.data.server_key, auth_message, self.algorithm)
        return encode_utf8(format_message([(ScramKey.VERIFIER, b64encode_str(server_signature))]))
