"""Credential vault: Fernet encrypt/decrypt of stored Garmin secrets."""

from unittest.mock import patch

import pytest
from cryptography.fernet import InvalidToken

from app.config import settings
from app.services.crypto import ConfigurationError, decrypt_value, encrypt_value, get_fernet


def test_encrypt_decrypt():
    token = encrypt_value("hunter2")
    assert token != "hunter2"
    assert "hunter2" not in token
    assert decrypt_value(token) == "hunter2"


def test_encrypt_is_randomized():
    assert encrypt_value("same") != encrypt_value("same")


def test_unicode_roundtrip():
    assert decrypt_value(encrypt_value("пароль-ü-✓")) == "пароль-ü-✓"


@pytest.mark.parametrize("value", [None, ""])
def test_empty_maps_to_none(value):
    assert encrypt_value(value) is None
    assert decrypt_value(value) is None


def test_tampered_ciphertext_raises():
    token = encrypt_value("hunter2")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    with pytest.raises(InvalidToken):
        decrypt_value(tampered)


def test_missing_key_is_configuration_error():
    with patch.object(settings, "encryption_key", ""):
        with pytest.raises(ConfigurationError):
            get_fernet()
        with pytest.raises(ConfigurationError):
            encrypt_value("x")


def test_malformed_key_is_configuration_error():
    with patch.object(settings, "encryption_key", "x" * 32):
        with pytest.raises(ConfigurationError):
            get_fernet()
