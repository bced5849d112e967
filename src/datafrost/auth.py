"""Credential material — turn stored secrets into objects the drivers accept."""

from __future__ import annotations

from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from datafrost.adapters._base import InvalidCredentialShape

BQ_SCOPES = ["https://www.googleapis.com/auth/bigquery"]


def bigquery_credentials(info: dict[str, Any]):
    """Build service-account credentials from the pasted JSON key file.

    Returns a google.oauth2.service_account.Credentials object.
    """
    from google.oauth2 import service_account

    try:
        return service_account.Credentials.from_service_account_info(info, scopes=BQ_SCOPES)
    except (ValueError, KeyError) as e:
        raise InvalidCredentialShape(f"invalid service account credentials: {e}") from e


def load_snowflake_private_key(pem: str, passphrase: str | None = None) -> bytes:
    """Decode a PEM private key (PKCS#8 or PKCS#1, optionally encrypted).

    Returns the key as unencrypted PKCS#8 DER, the form snowflake-connector-python
    takes for key-pair (JWT) authentication. Only RSA keys are accepted.
    """
    password = passphrase.encode() if passphrase else None
    try:
        key = serialization.load_pem_private_key(pem.strip().encode(), password=password)
    except TypeError as e:
        # Raised both for "encrypted but no password" and "password given for a
        # plain key".
        if password is None:
            raise InvalidCredentialShape(
                "private key is encrypted but no passphrase was provided"
            ) from e
        raise InvalidCredentialShape(f"failed to parse private key: {e}") from e
    except ValueError as e:
        raise InvalidCredentialShape(f"failed to parse private key: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidCredentialShape("private key is not RSA")

    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
