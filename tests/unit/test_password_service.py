"""Unit tests for PasswordHasher."""

import pytest

from src.services.password_service import PasswordHasher


class TestPasswordHashing:
    """Tests for bcrypt hash / verify."""

    def test_hash_returns_bcrypt_string(self, hasher):
        hashed = hasher.hash("my-secret-pw")
        assert hashed.startswith("$2b$") or hashed.startswith("$2a$")
        assert len(hashed) == 60

    def test_hash_uses_configured_rounds(self):
        hashed = PasswordHasher(rounds=5).hash("pw")
        assert hashed.split("$")[2] == "05"

    def test_hash_different_salts(self, hasher):
        assert hasher.hash("same-password") != hasher.hash("same-password")

    def test_verify_correct(self, hasher):
        hashed = hasher.hash("correct-horse-battery")
        assert hasher.verify("correct-horse-battery", hashed) is True

    def test_verify_wrong(self, hasher):
        hashed = hasher.hash("right-password")
        assert hasher.verify("wrong-password", hashed) is False

    def test_verify_malformed_hash_raises(self, hasher):
        with pytest.raises(ValueError):
            hasher.verify("pw", "not-a-bcrypt-hash")

    def test_verify_overlong_password_is_mismatch(self, hasher):
        hashed = hasher.hash("right-password")
        assert hasher.verify("w" * 80, hashed) is False

    def test_verify_counts_bytes_not_characters(self, hasher):
        hashed = hasher.hash("right-password")
        # 25 characters, 75 bytes
        assert hasher.verify("€" * 25, hashed) is False

    def test_hash_overlong_password_raises(self, hasher):
        with pytest.raises(ValueError):
            hasher.hash("p" * 80)
