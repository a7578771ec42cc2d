"""Shared constants for the worldsign client."""

# Backend
DEFAULT_BASE_URL = "http://localhost:4040"
DEFAULT_TIMEOUT = 10.0  # seconds
WORLD_PATH = "/world"
HEALTH_PATH = "/health"

# Signable routes
PERSONA_CREATE_PATH = "/tx/persona/create-persona"
GAME_TX_PREFIX = "/tx/game/"

# Query parameters carrying signing inputs (code-generation workaround)
PRIVATE_KEY_PARAM = "_privateKey"
NAMESPACE_PARAM = "_namespace"

# Request extension key for the request-scoped signing context
SIGNING_EXTENSION = "worldsign.signing"

# The server no longer validates the nonce; it stays fixed for compatibility
LEGACY_NONCE = "0"

# Signatures
PRIVATE_KEY_SIZE = 32
SIGNATURE_SIZE = 65  # r(32) + s(32) + v(1)
SIGNATURE_HEX_LENGTH = SIGNATURE_SIZE * 2
RECOVERY_SUFFIXES = {
    27: "1b",  # y-parity 0
    28: "1c",  # y-parity 1
}

# Namespace sources
NAMESPACE_FETCH = "fetch"
NAMESPACE_QUERY = "query"
NAMESPACE_SOURCES = (NAMESPACE_FETCH, NAMESPACE_QUERY)


class TxKind:
    """Kinds of signable requests."""

    PERSONA_CREATE = "persona-create"
    GAME_TX = "game-tx"
