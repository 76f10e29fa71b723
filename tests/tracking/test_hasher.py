import hashlib

from src.tracking import hasher


def test_digest_is_lowercase_sha256_hex() -> None:
    digest = hasher.digest("header.payload.signature")

    assert digest == hashlib.sha256(b"header.payload.signature").hexdigest()
    assert len(digest) == hasher.DIGEST_HEX_LENGTH
    assert digest == digest.lower()


def test_digest_is_deterministic_and_input_sensitive() -> None:
    assert hasher.digest("abc") == hasher.digest("abc")
    assert hasher.digest("abc") != hasher.digest("abd")


def test_digest_of_empty_string() -> None:
    assert hasher.digest("") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_short_hash_prefix() -> None:
    digest = hasher.digest("token")

    assert hasher.short_hash(digest) == digest[:12]
    assert hasher.short_hash(digest, length=4) == digest[:4]


def test_digest_accepts_lone_surrogates() -> None:
    digest = hasher.digest("a.b.\ud800")

    assert len(digest) == hasher.DIGEST_HEX_LENGTH
    assert digest != hasher.digest("a.b.")
