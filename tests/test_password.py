"""
Tests for the login password obfuscation (aptusbot/portal/password.py)
"""
import pytest

from aptusbot.portal import password


class TestEncode:
    def test_xors_each_character_with_salt(self):
        assert password.encode("ab", "1") == chr(ord("a") ^ 1) + chr(ord("b") ^ 1)

    def test_known_value(self):
        # 'A' (65) ^ 3 == 66 ('B')
        assert password.encode("A", "3") == "B"

    @pytest.mark.parametrize("salt", ["17", "0", "65535", "  42  "])
    def test_self_inverse(self, salt):
        secret = "hunter2-åäö"
        assert password.decode(password.encode(secret, salt), salt) == secret

    @pytest.mark.parametrize("salt", [None, "", "   ", "abc", "12x"])
    def test_unusable_salt_returns_password_unchanged(self, salt):
        assert password.encode("secret", salt) == "secret"

    def test_unusable_salt_logs_warning(self, caplog):
        password.encode("secret", "nope")
        assert "Unusable password salt" in caplog.text

    def test_zero_salt_is_identity(self):
        assert password.encode("secret", "0") == "secret"

    def test_negative_salt_does_not_raise(self):
        encoded = password.encode("secret", "-5")
        assert password.decode(encoded, "-5") == "secret"

    def test_empty_password(self):
        assert password.encode("", "17") == ""
