from cryptography.fernet import Fernet, InvalidToken
from app.config import settings


class ConfigurationError(RuntimeError):
    """Process-level misconfiguration (e.g. ENCRYPTION_KEY missing). Not recoverable per call."""


def get_fernet() -> Fernet:
    if not settings.encryption_key:
        raise ConfigurationError(
            "ENCRYPTION_KEY is not set. "
            'Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"'
        )
    key = settings.encryption_key.encode() if isinstance(settings.encryption_key, str) else settings.encryption_key
    try:
        return Fernet(key)
    except ValueError as e:
        raise ConfigurationError("ENCRYPTION_KEY is not a valid Fernet key") from e


def encrypt_value(value: str | None) -> str | None:
    """Encrypt a secret for storage. Empty/absent values map to None without touching the cipher."""
    if not value:
        return None
    return get_fernet().encrypt(value.encode()).decode()


def decrypt_value(encrypted: str | None) -> str | None:
    """Decrypt a stored secret. Empty/absent values map to None; tampered ciphertext raises InvalidToken."""
    if not encrypted:
        return None
    return get_fernet().decrypt(encrypted.encode()).decode()


__all__ = ["ConfigurationError", "InvalidToken", "decrypt_value", "encrypt_value", "get_fernet"]
