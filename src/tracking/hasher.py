import hashlib

DIGEST_HEX_LENGTH = 64


def digest(raw: str) -> str:
    """
    Return the SHA-256 hex digest of a raw token string.

    The digest is the only form of a token that is ever persisted: it is used as
    the revocation lookup key, never to authenticate anything. Issuer and
    verifier compute it independently, so no token carries its own hash.

    Lone surrogates are encoded as-is so that any ``str`` has a digest.

    :param raw: The full wire-form token.
    :return: 64 lowercase hex characters.
    """
    return hashlib.sha256(raw.encode("utf-8", "surrogatepass")).hexdigest()


def short_hash(token_hash: str, length: int = 12) -> str:
    """Prefix of a token hash that is safe to put in log lines."""
    return token_hash[:length]
