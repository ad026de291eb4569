# SPDX-License-Identifier: LGPL-3.0-or-later
"""Test the ScramShaSaslClient conversation.

Golden values are the published RFC 5802 / RFC 7677 examples and the
MongoDB variant of the RFC 5802 example, where SCRAM-SHA-1 is fed the
legacy `user:mongo:password` digest instead of the password itself.
"""

import unittest

from base64 import b64decode, b64encode

import mongo_scram_client as scram
from mongo_scram_client.credential import plain_secret


SHA1_CLIENT_NONCE = 'fyko+d2lbbFgONRv9qkxdawL'
SHA1_SERVER_FIRST = b'r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92,i=4096'
SHA1_LEGACY_CLIENT_FINAL = b'c=biws,r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,p=MC2T8BvbmWRckDw8oWl5IVghwCY='
SHA1_LEGACY_SERVER_FINAL = b'v=UMWeI25JD1yNYZRMpZ4VHvhZ9e0='
SHA1_RFC_CLIENT_FINAL = b'c=biws,r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,p=v0X8v3Bz2T0CJGbJQyF0X+HI4Ts='
SHA1_RFC_SERVER_FINAL = b'v=rmF9pqV8S7suAoZWja4dJRkFsKQ='

SHA256_CLIENT_NONCE = 'rOprNGfwEbeRWgbNEkqO'
SHA256_SERVER_FIRST = (
    b'r=rOprNGfwEbeRWgbNEkqO%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0,s=W22ZaJ0SNY7soEsUEjb6gQ==,i=4096'
)
SHA256_CLIENT_FINAL = (
    b'c=biws,r=rOprNGfwEbeRWgbNEkqO%hvYDpWUa2RaTCAfuxFIlj)hNlF$k0,'
    b'p=dHzbZapWIk4jUhN+Ute9ytag9zjfMHgsqmmiz7AndVQ='
)
SHA256_SERVER_FINAL = b'v=6rriTRBi23WpRR/wtup+mMhUZUn/dB5nLTJRsjl95G4='


def fixed_nonce(nonce):
    return lambda length: nonce


def sha1_client(**kwargs):
    credential = scram.MongoCredential('user', 'pencil', scram.Mechanism.SCRAM_SHA_1)
    return scram.ScramShaSaslClient(credential, nonce_generator=fixed_nonce(SHA1_CLIENT_NONCE), **kwargs)


def sha256_client(**kwargs):
    credential = scram.MongoCredential('user', 'pencil', scram.Mechanism.SCRAM_SHA_256)
    return scram.ScramShaSaslClient(credential, nonce_generator=fixed_nonce(SHA256_CLIENT_NONCE), **kwargs)


class TestGoldenVectors(unittest.TestCase):
    """Full conversations against published examples."""

    def test_sha1_legacy_hash(self):
        client = sha1_client()

        self.assertEqual(client.start(), b'n,,n=user,r=fyko+d2lbbFgONRv9qkxdawL')
        self.assertEqual(client.evaluate(SHA1_SERVER_FIRST), SHA1_LEGACY_CLIENT_FINAL)
        self.assertEqual(client.evaluate(SHA1_LEGACY_SERVER_FINAL), SHA1_LEGACY_SERVER_FINAL)
        self.assertTrue(client.is_complete())

    def test_sha1_rfc5802_plain_secret(self):
        client = sha1_client(secret_generator=plain_secret)

        client.start()
        self.assertEqual(client.evaluate(SHA1_SERVER_FIRST), SHA1_RFC_CLIENT_FINAL)
        client.evaluate(SHA1_RFC_SERVER_FINAL)
        self.assertTrue(client.is_complete())

    def test_sha1_precomputed_digest(self):
        digest = scram.legacy_password_digest('user', 'pencil')
        credential = scram.MongoCredential('user', mechanism=scram.Mechanism.SCRAM_SHA_1, password_digest=digest)
        client = scram.ScramShaSaslClient(credential, nonce_generator=fixed_nonce(SHA1_CLIENT_NONCE))

        client.start()
        self.assertEqual(client.evaluate(SHA1_SERVER_FIRST), SHA1_LEGACY_CLIENT_FINAL)

    def test_sha256_rfc7677(self):
        client = sha256_client()

        self.assertEqual(client.start(), b'n,,n=user,r=rOprNGfwEbeRWgbNEkqO')
        self.assertEqual(client.evaluate(SHA256_SERVER_FIRST), SHA256_CLIENT_FINAL)
        self.assertEqual(client.evaluate(SHA256_SERVER_FINAL), SHA256_SERVER_FINAL)
        self.assertTrue(client.is_complete())

    def test_deterministic(self):
        results = []
        for _ in range(2):
            client = sha256_client()
            client.start()
            results.append(client.evaluate(SHA256_SERVER_FIRST))

        self.assertEqual(results[0], results[1])


class TestClientFirstMessage(unittest.TestCase):

    def test_random_nonce(self):
        credential = scram.MongoCredential('user', 'pencil')
        client = scram.ScramShaSaslClient(credential)

        message = client.start()
        self.assertTrue(message.startswith(b'n,,n=user,r='))
        self.assertEqual(len(client.client_nonce), scram.CLIENT_NONCE_LENGTH)
        self.assertEqual(message, b'n,,n=user,r=' + client.client_nonce.encode())

    def test_nonce_not_reused(self):
        credential = scram.MongoCredential('user', 'pencil')
        first = scram.ScramShaSaslClient(credential)
        second = scram.ScramShaSaslClient(credential)
        first.start()
        second.start()

        self.assertNotEqual(first.client_nonce, second.client_nonce)

    def test_nonce_generator_length(self):
        requested = []
        credential = scram.MongoCredential('user', 'pencil')

        def generator(length):
            requested.append(length)
            return 'x' * length

        scram.ScramShaSaslClient(credential, nonce_generator=generator).start()
        self.assertEqual(requested, [24])

    def test_escaped_username(self):
        credential = scram.MongoCredential('us=er,', 'pencil', scram.Mechanism.SCRAM_SHA_1)
        client = scram.ScramShaSaslClient(credential, nonce_generator=fixed_nonce('abc'))

        self.assertEqual(client.start(), b'n,,n=us=3Der=2C,r=abc')

    def test_normalized_username(self):
        credential = scram.MongoCredential('user\u2168', 'pencil', scram.Mechanism.SCRAM_SHA_256)
        client = scram.ScramShaSaslClient(credential, nonce_generator=fixed_nonce('abc'))

        self.assertEqual(client.start(), b'n,,n=userIX,r=abc')


class TestServerFirstValidation(unittest.TestCase):

    def test_invalid_nonce(self):
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.InvalidNonce) as ctx:
            client.evaluate(b'r=XXXX+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92,i=4096')

        self.assertEqual(ctx.exception.code, scram.SCRAM_E_NONCE_ERROR)
        self.assertIs(client.state, scram.ScramState.FAILED)

    def test_nonce_must_be_prefix(self):
        """Containing the client nonce somewhere else is not enough."""
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.InvalidNonce):
            client.evaluate(b'r=3rfcfyko+d2lbbFgONRv9qkxdawL,s=QSXCR+Q6sek8bf92,i=4096')

    def test_invalid_nonce_checked_first(self):
        """A foreign nonce is reported as such whatever else is wrong with the message."""
        for server_first in (
            b'r=WRONGnonce,i=4096',
            b'r=WRONGnonce,s=QSXCR+Q6sek8bf92',
            b'r=WRONGnonce,s=QSXCR+Q6sek8bf92,i=lots',
            b'r=WRONGnonce,s=not base64!,i=1',
        ):
            with self.subTest(server_first=server_first):
                client = sha1_client()
                client.start()

                with self.assertRaises(scram.InvalidNonce):
                    client.evaluate(server_first)

                self.assertIs(client.state, scram.ScramState.FAILED)

    def test_iteration_count_below_minimum(self):
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.InvalidIterationCount) as ctx:
            client.evaluate(SHA1_SERVER_FIRST.replace(b'i=4096', b'i=4095'))

        self.assertEqual(ctx.exception.code, scram.SCRAM_E_ITERATION_ERROR)

    def test_iteration_counts(self):
        for iterations, accepted in ((0, False), (1, False), (4095, False), (4096, True), (10000, True)):
            with self.subTest(iterations=iterations):
                client = sha1_client()
                client.start()
                server_first = SHA1_SERVER_FIRST.replace(b'i=4096', f'i={iterations}'.encode())

                if accepted:
                    client.evaluate(server_first)
                    self.assertIs(client.state, scram.ScramState.AWAITING_SERVER_FINAL)
                else:
                    with self.assertRaises(scram.InvalidIterationCount):
                        client.evaluate(server_first)

    def test_configured_minimum(self):
        client = sha1_client(min_iteration_count=10000)
        client.start()

        with self.assertRaises(scram.InvalidIterationCount):
            client.evaluate(SHA1_SERVER_FIRST)

    def test_minimum_cannot_be_lowered(self):
        with self.assertRaises(ValueError):
            sha1_client(min_iteration_count=1000)

    def test_configured_maximum(self):
        client = sha1_client(max_iteration_count=5000)
        client.start()

        with self.assertRaises(scram.InvalidIterationCount):
            client.evaluate(SHA1_SERVER_FIRST.replace(b'i=4096', b'i=5000000'))

        with self.assertRaises(ValueError):
            sha1_client(max_iteration_count=100)

    def test_default_maximum(self):
        client = sha1_client()
        client.start()
        self.assertEqual(client.max_iteration_count, scram.MAX_ITERATION_COUNT)

        server_first = SHA1_SERVER_FIRST.replace(b'i=4096', f'i={scram.MAX_ITERATION_COUNT + 1}'.encode())
        with self.assertRaises(scram.InvalidIterationCount) as ctx:
            client.evaluate(server_first)

        self.assertEqual(ctx.exception.code, scram.SCRAM_E_ITERATION_ERROR)

    def test_maximum_can_be_disabled(self):
        client = sha1_client(max_iteration_count=None)
        self.assertIsNone(client.max_iteration_count)

    def test_missing_fields(self):
        for server_first in (
            b's=QSXCR+Q6sek8bf92,i=4096',
            b'r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,i=4096',
            b'r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92',
        ):
            with self.subTest(server_first=server_first):
                client = sha1_client()
                client.start()

                with self.assertRaises(scram.ProtocolViolation):
                    client.evaluate(server_first)

    def test_malformed_fields(self):
        for server_first in (
            SHA1_SERVER_FIRST.replace(b'i=4096', b'i=many'),
            SHA1_SERVER_FIRST.replace(b'i=4096', b'i=-4096'),
            SHA1_SERVER_FIRST.replace(b'i=4096', b'i='),
            SHA1_SERVER_FIRST.replace(b's=QSXCR+Q6sek8bf92', b's=not base64!'),
            b'garbage',
            b'r=\xff\xfe',
        ):
            with self.subTest(server_first=server_first):
                client = sha1_client()
                client.start()

                with self.assertRaises(scram.ProtocolViolation):
                    client.evaluate(server_first)

    def test_extension_fields_ignored(self):
        client = sha1_client()
        client.start()

        client_final = client.evaluate(SHA1_SERVER_FIRST + b',x=extension')
        self.assertTrue(client_final.startswith(b'c=biws,r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,p='))
        # the extension is part of the AuthMessage, so the proof differs
        self.assertNotEqual(client_final, SHA1_LEGACY_CLIENT_FINAL)

    def test_server_error(self):
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.ProtocolViolation) as ctx:
            client.evaluate(b'e=unknown-user')

        self.assertEqual(ctx.exception.server_error, 'unknown-user')


class TestServerFinalValidation(unittest.TestCase):

    def started_client(self):
        client = sha1_client()
        client.start()
        client.evaluate(SHA1_SERVER_FIRST)
        return client

    def test_valid_signature_accepted(self):
        client = self.started_client()

        self.assertEqual(client.evaluate(SHA1_LEGACY_SERVER_FINAL), SHA1_LEGACY_SERVER_FINAL)
        self.assertTrue(client.is_complete())

    def test_flipped_bit_rejected(self):
        signature = b64decode(SHA1_LEGACY_SERVER_FINAL[2:])
        for bit in range(len(signature) * 8):
            with self.subTest(bit=bit):
                tampered = bytearray(signature)
                tampered[bit // 8] ^= 1 << (bit % 8)
                client = self.started_client()

                with self.assertRaises(scram.InvalidServerSignature) as ctx:
                    client.evaluate(b'v=' + b64encode(bytes(tampered)))

                self.assertEqual(ctx.exception.code, scram.SCRAM_E_AUTH_FAILED)
                self.assertFalse(client.is_complete())

    def test_signature_of_other_mechanism_rejected(self):
        client = self.started_client()

        with self.assertRaises(scram.InvalidServerSignature):
            client.evaluate(SHA1_RFC_SERVER_FINAL)

    def test_truncated_signature_rejected(self):
        client = self.started_client()

        with self.assertRaises(scram.InvalidServerSignature):
            client.evaluate(b'v=' + b64encode(b64decode(SHA1_LEGACY_SERVER_FINAL[2:])[:-1]))

    def test_missing_verifier(self):
        client = self.started_client()

        with self.assertRaises(scram.ProtocolViolation):
            client.evaluate(b'x=UMWeI25JD1yNYZRMpZ4VHvhZ9e0=')

    def test_server_error(self):
        client = self.started_client()

        with self.assertRaises(scram.ProtocolViolation) as ctx:
            client.evaluate(b'e=invalid-proof')

        self.assertEqual(ctx.exception.server_error, 'invalid-proof')
        self.assertIs(client.state, scram.ScramState.FAILED)


class TestStateMachine(unittest.TestCase):

    def test_steps(self):
        client = sha1_client()
        self.assertEqual(client.step, -1)
        self.assertIs(client.state, scram.ScramState.AWAITING_START)

        client.start()
        self.assertEqual(client.step, 0)
        self.assertIs(client.state, scram.ScramState.AWAITING_SERVER_FIRST)

        client.evaluate(SHA1_SERVER_FIRST)
        self.assertEqual(client.step, 1)
        self.assertIs(client.state, scram.ScramState.AWAITING_SERVER_FINAL)
        self.assertFalse(client.is_complete())

        client.evaluate(SHA1_LEGACY_SERVER_FINAL)
        self.assertEqual(client.step, 2)
        self.assertIs(client.state, scram.ScramState.COMPLETE)

    def test_too_many_steps(self):
        client = sha1_client()
        client.start()
        client.evaluate(SHA1_SERVER_FIRST)
        client.evaluate(SHA1_LEGACY_SERVER_FINAL)

        for payload in (b'', SHA1_LEGACY_SERVER_FINAL, SHA1_SERVER_FIRST, b'garbage'):
            with self.subTest(payload=payload):
                with self.assertRaises(scram.ProtocolViolation) as ctx:
                    client.evaluate(payload)

                self.assertIn('Too many steps', str(ctx.exception))
                self.assertTrue(client.is_complete())

    def test_start_after_complete(self):
        client = sha1_client()
        client.start()
        client.evaluate(SHA1_SERVER_FIRST)
        client.evaluate(SHA1_LEGACY_SERVER_FINAL)

        with self.assertRaises(scram.ProtocolViolation):
            client.start()

    def test_start_twice(self):
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.ProtocolViolation) as ctx:
            client.start()

        self.assertEqual(ctx.exception.code, scram.SCRAM_E_INVALID_REQUEST)
        self.assertIs(client.state, scram.ScramState.FAILED)

    def test_evaluate_before_start(self):
        client = sha1_client()

        with self.assertRaises(scram.ProtocolViolation) as ctx:
            client.evaluate(SHA1_SERVER_FIRST)

        self.assertEqual(ctx.exception.code, scram.SCRAM_E_INVALID_REQUEST)
        self.assertIs(client.state, scram.ScramState.FAILED)

    def test_failure_is_terminal(self):
        client = sha1_client()
        client.start()

        with self.assertRaises(scram.InvalidIterationCount):
            client.evaluate(SHA1_SERVER_FIRST.replace(b'i=4096', b'i=1'))

        self.assertIsNone(client.step)
        with self.assertRaises(scram.ProtocolViolation):
            client.evaluate(SHA1_SERVER_FIRST)

    def test_failure_logged_without_secrets(self):
        client = sha1_client()
        client.start()

        with self.assertLogs('mongo_scram_client.client', level='WARNING') as logs:
            with self.assertRaises(scram.InvalidNonce):
                client.evaluate(b'r=other,s=QSXCR+Q6sek8bf92,i=4096')

        output = '\n'.join(logs.output)
        self.assertIn('SCRAM-SHA-1', output)
        self.assertNotIn('pencil', output)

    def test_sasl_client_surface(self):
        client = sha256_client()

        self.assertTrue(client.has_initial_response)
        self.assertEqual(client.mechanism_name, 'SCRAM-SHA-256')
        client.dispose()

        with self.assertRaises(NotImplementedError):
            client.wrap(b'data')

        with self.assertRaises(NotImplementedError):
            client.unwrap(b'data')

    def test_invalid_credential(self):
        with self.assertRaises(TypeError):
            scram.ScramShaSaslClient(('user', 'pencil'))  # type: ignore


class TestScramShaAuthenticator(unittest.TestCase):

    def test_mechanism(self):
        credential = scram.MongoCredential('user', 'pencil', scram.Mechanism.SCRAM_SHA_1)
        authenticator = scram.ScramShaAuthenticator(credential)

        self.assertIs(authenticator.mechanism, scram.Mechanism.SCRAM_SHA_1)
        self.assertEqual(authenticator.mechanism_name, 'SCRAM-SHA-1')

    def test_fresh_client_per_attempt(self):
        credential = scram.MongoCredential('user', 'pencil')
        authenticator = scram.ScramShaAuthenticator(credential)

        first = authenticator.create_sasl_client()
        second = authenticator.create_sasl_client()
        first.start()
        second.start()

        self.assertIsNot(first, second)
        self.assertNotEqual(first.client_nonce, second.client_nonce)

    def test_strategies_passed_through(self):
        credential = scram.MongoCredential('user', 'pencil', scram.Mechanism.SCRAM_SHA_1)
        authenticator = scram.ScramShaAuthenticator(
            credential,
            nonce_generator=fixed_nonce(SHA1_CLIENT_NONCE),
            secret_generator=plain_secret,
            max_iteration_count=10000,
        )

        client = authenticator.create_sasl_client()
        client.start()
        self.assertEqual(client.evaluate(SHA1_SERVER_FIRST), SHA1_RFC_CLIENT_FINAL)
        self.assertEqual(client.max_iteration_count, 10000)


if __name__ == '__main__':
    unittest.main()
