"""
Encryption/Decryption for stored credentials

Plaud bearer tokens and transcription API keys are stored encrypted with
Fernet (cryptography library). Encrypted values carry the "enc-v1-" prefix so
callers can tell ciphertext from plain text.

Usage as module:
    from utils.encryption import encrypt_secret, decrypt_secret

    stored = encrypt_secret("plaud-bearer-token")   # "enc-v1-gAAAAAB..."
    token = decrypt_secret(stored)                  # "plaud-bearer-token"

Usage as CLI:
    python -m utils.encryption "my_secret_key"      # encrypts
    python -m utils.encryption "enc-v1-gAAAAAB..."  # decrypts

Environment Variables:
    TOKEN_ENCRYPTION_KEY: 32-byte url-safe base64 Fernet key (required)

Generate key:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

import os
import sys

from cryptography.fernet import Fernet, InvalidToken

ENCRYPTED_PREFIX = "enc-v1-"
ENCRYPTION_KEY_ENV = "TOKEN_ENCRYPTION_KEY"


def _get_fernet() -> Fernet:
    encryption_key = os.getenv(ENCRYPTION_KEY_ENV)
    if not encryption_key:
        raise ValueError(
            f"{ENCRYPTION_KEY_ENV} environment variable not set. "
            "Generate with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
        )
    try:
        return Fernet(encryption_key.encode())
    except ValueError as exc:
        raise ValueError(
            f"Invalid encryption key format: {exc}. Key must be a 32-byte url-safe base64 string."
        ) from exc


def is_encrypted(value: str | None) -> bool:
    """Return True when the value carries the ciphertext prefix."""
    return bool(value) and value.startswith(ENCRYPTED_PREFIX)


def encrypt_secret(plain_text: str) -> str:
    """
    Encrypt a secret for storage.

    Raises:
        ValueError: If the input is empty, already encrypted, or the key is missing
    """
    if not plain_text:
        raise ValueError("Input string cannot be empty")
    if is_encrypted(plain_text):
        raise ValueError("Value is already encrypted")

    token = _get_fernet().encrypt(plain_text.encode()).decode()
    return f"{ENCRYPTED_PREFIX}{token}"


def decrypt_secret(stored_value: str) -> str:
    """
    Decrypt a stored secret.

    Values without the prefix are rejected rather than passed through, so a
    plain token written by mistake is never silently used.

    Raises:
        ValueError: If the value is empty or not encrypted
        cryptography.fernet.InvalidToken: If the ciphertext is corrupt or the key differs
    """
    if not stored_value:
        raise ValueError("Input string cannot be empty")
    if not is_encrypted(stored_value):
        raise ValueError("Value is not encrypted (missing prefix)")

    fernet = _get_fernet()
    try:
        return fernet.decrypt(stored_value[len(ENCRYPTED_PREFIX):].encode()).decode()
    except InvalidToken:
        raise InvalidToken(
            "Decryption failed. The value may be corrupted or encrypted with a different key."
        )


def main() -> None:
    """CLI interface: encrypts plain values, decrypts prefixed ones."""
    if len(sys.argv) != 2:
        print("Usage: python -m utils.encryption <string_to_encrypt_or_decrypt>")
        print()
        print("Environment Variables:")
        print(f"  {ENCRYPTION_KEY_ENV}: Required. Generate with:")
        print('  python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"')
        sys.exit(1)

    input_string = sys.argv[1]
    try:
        if is_encrypted(input_string):
            print(f"Decrypted: {decrypt_secret(input_string)}")
        else:
            print(f"Encrypted: {encrypt_secret(input_string)}")
        sys.exit(0)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except InvalidToken as e:
        print(f"Decryption Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
