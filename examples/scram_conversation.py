import logging

import mongo_scram_client


USERNAME = "myusername"
PASSWORD = "mypassword"


def authenticate(authenticator: mongo_scram_client.ScramShaAuthenticator,
                 server: mongo_scram_client.ScramServer) -> bool:
    """
    Stand-in for the connection layer. A real driver would send each payload in a
    saslStart / saslContinue command and hand the server's reply to evaluate().
    """
    client = authenticator.create_sasl_client()
    try:
        server_first = server.get_server_first_message(client.start())
        server_final = server.get_server_final_message(client.evaluate(server_first))
        if server_final is None:
            # Bad username or password
            return False

        client.evaluate(server_final)
    except mongo_scram_client.ScramError as e:
        logging.error("Authentication failed: %r", e)
        return False

    return client.is_complete()


logging.basicConfig(level=logging.DEBUG)

credential = mongo_scram_client.MongoCredential(USERNAME, PASSWORD, mongo_scram_client.Mechanism.SCRAM_SHA_256)
server_data = mongo_scram_client.ScramServerData.from_credential(credential, iteration_count=15000)

# Every attempt uses a fresh conversation (and nonce)
assert authenticate(mongo_scram_client.ScramShaAuthenticator(credential), mongo_scram_client.ScramServer(server_data))
