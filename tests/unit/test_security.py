"""Unit tests for DynDNS password hashing."""

from zonemgr.security import hash_password, verify_password


class TestHashPassword:
    def test_salted(self):
        first = hash_password("s3cret")
        second = hash_password("s3cret")

        assert first != second
        assert first.startswith("$2b$")

    def test_long_passwords_differ_past_72_bytes(self):
        """Passwords sharing the first 72 bytes must not verify against each other."""
        hashed = hash_password("a" * 100)

        assert verify_password("a" * 100, hashed)
        assert not verify_password("a" * 80, hashed)


class TestVerifyPassword:
    def test_correct_and_wrong(self):
        hashed = hash_password("pässwörd")

        assert verify_password("pässwörd", hashed)
        assert not verify_password("password", hashed)

    def test_unusable_hash(self):
        assert not verify_password("x", "not-a-bcrypt-hash")
        assert not verify_password("x", "")
        assert not verify_password("x", None)
