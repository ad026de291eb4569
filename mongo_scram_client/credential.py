# SPDX-License-Identifier: LGPL-3.0-or-later
# Credentials and the mechanism-specific derivation of the SCRAM secret

import logging

from collections.abc import Callable
from dataclasses import dataclass

from .constants import LEGACY_HASH_ALGORITHM, Mechanism
from .saslprep import saslprep
from .scram_crypto import scram_h


__all__ = [
    'MongoCredential',
    'SecretGenerator',
    'escape_username',
    'unescape_username',
    'legacy_password_digest',
    'plain_secret',
    'legacy_secret',
    'default_secret_generator',
    'prepare_username',
    'prepare_secret',
]

logger = logging.getLogger(__name__)

SecretGenerator = Callable[['MongoCredential'], str]


@dataclass(frozen=True)
class MongoCredential:
    """
    A user credential for SCRAM authentication. Immutable for the lifetime of
    any conversation using it.

    `password_digest` may be given instead of `password` for SCRAM-SHA-1: it is
    the hex digest produced by legacy_password_digest() and is used verbatim.
    SCRAM-SHA-256 needs the real password since the server stores keys derived
    from the SASLprep'ed password itself.
    """
    username: str
    password: str | None = None
    mechanism: Mechanism = Mechanism.SCRAM_SHA_256
    password_digest: str | None = None

    def __post_init__(self):
        if not isinstance(self.username, str):
            raise TypeError('Username must be string')

        if not self.username:
            raise ValueError('Must specify username')

        if not isinstance(self.mechanism, Mechanism):
            # Accept the plain mechanism name as well
            object.__setattr__(self, 'mechanism', Mechanism(self.mechanism))

        if (self.password is None) == (self.password_digest is None):
            raise ValueError('Must specify exactly one of password or password_digest')

        if self.password is not None and not isinstance(self.password, str):
            raise TypeError('Password must be string')

        if self.password_digest is not None and self.mechanism is not Mechanism.SCRAM_SHA_1:
            raise ValueError(f'{self.mechanism}: password_digest is only usable with SCRAM-SHA-1')

    def __repr__(self):
        # never expose the password in tracebacks or logs
        return f'MongoCredential(username={self.username!r}, mechanism={str(self.mechanism)!r})'


def escape_username(username: str) -> str:
    """
    Escape `=` and `,` in a SCRAM username (RFC 5802, Section 5.1). The `=`
    replacement must come first so the sequences produced for `,` are not
    escaped again.
    """
    return username.replace('=', '=3D').replace(',', '=2C')


def unescape_username(username: str) -> str:
    return username.replace('=2C', ',').replace('=3D', '=')


def legacy_password_digest(username: str, password: str) -> str:
    """
    Hex MD5 of `username:mongo:password`, the value MongoDB uses as the
    SCRAM-SHA-1 password. Neither input is escaped or normalized.
    """
    data = f'{username}:mongo:{password}'.encode('utf-8')
    return scram_h(data, LEGACY_HASH_ALGORITHM).hex()


def plain_secret(credential: MongoCredential) -> str:
    if credential.password is None:
        raise ValueError(f'{credential.mechanism}: credential has no password')

    return credential.password


def legacy_secret(credential: MongoCredential) -> str:
    if credential.password_digest is not None:
        return credential.password_digest

    return legacy_password_digest(credential.username, credential.password)


def default_secret_generator(mechanism: Mechanism) -> SecretGenerator:
    """Select how the secret fed into Hi() is produced for `mechanism`."""
    if mechanism is Mechanism.SCRAM_SHA_1:
        return legacy_secret

    return plain_secret


def prepare_username(credential: MongoCredential) -> str:
    """Username as it goes into the client-first-message."""
    username = escape_username(credential.username)
    if credential.mechanism is Mechanism.SCRAM_SHA_256:
        username = saslprep(username)

    return username


def prepare_secret(credential: MongoCredential, secret_generator: SecretGenerator) -> bytes:
    """
    Produce the secret for Hi(). SCRAM-SHA-256 secrets go through the SASLprep
    stored-string profile; SCRAM-SHA-1 secrets are hex digests and are used
    as-is.
    """
    secret = secret_generator(credential)
    if credential.mechanism is Mechanism.SCRAM_SHA_256:
        secret = saslprep(secret)

    logger.debug('Prepared %s secret for user %r', credential.mechanism, credential.username)
    return secret.encode('utf-8')
