from utils.security import Argon2Hasher, generate_token, hash_token


def make_hasher():
    return Argon2Hasher(time_cost=1, memory_cost=8, parallelism=1)


def test_hash_is_not_plaintext_and_verifies():
    hasher = make_hasher()
    hashed = hasher.hash("s3cret-password")

    assert hashed != "s3cret-password"
    assert hashed.startswith("$argon2id$")
    assert hasher.verify(hashed, "s3cret-password") is True
    assert hasher.verify(hashed, "wrong-password") is False


def test_hashes_are_salted():
    hasher = make_hasher()
    assert hasher.hash("same-password") != hasher.hash("same-password")


def test_verify_rejects_garbage_hash():
    assert make_hasher().verify("not-a-hash", "whatever") is False


def test_hash_verifies_under_different_cost_settings():
    hashed = make_hasher().hash("portable-password")
    assert Argon2Hasher(time_cost=2, memory_cost=16).verify(hashed, "portable-password")


def test_dummy_verify_is_always_false():
    assert make_hasher().dummy_verify("anything") is False


def test_generate_token_has_256_bits():
    token = generate_token()
    assert len(token) == 64
    assert token != generate_token()


def test_hash_token_is_deterministic_sha256():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")
    assert len(hash_token("abc")) == 64
