"""Token storage for source service credentials.

Each identity's bearer token is encrypted with KMS before it is written to
DynamoDB. The identity is bound into the KMS encryption context, so a
ciphertext copied onto another identity's item fails to decrypt.

Credentials table schema:
{
    "identifier": "user-123",          # Partition key
    "ciphertext": "AQICAHh...",        # Base64 KMS ciphertext
    "updated_at": "2026-01-15T..."     # ISO timestamp
}
"""

import base64
import binascii
import logging
import os
from datetime import UTC, datetime

import boto3
from botocore.exceptions import ClientError

from docbridge_common.formatting import sanitize_text_field
from docbridge_common.result import ErrorKind, Ok, Result, err

logger = logging.getLogger(__name__)


class TokenStore:
    """
    Per-identity encrypted token store.

    Usage:
        store = TokenStore()
        store.set("user-123", "secret-token")
        result = store.get("user-123")   # Ok("secret-token")
        store.clear("user-123")          # True
    """

    def __init__(self, table_name: str | None = None, kms_key_id: str | None = None):
        """
        Initialize the token store.

        Args:
            table_name: Credentials table. Defaults to CREDENTIALS_TABLE env var.
            kms_key_id: KMS key id or alias. Defaults to CREDENTIALS_KMS_KEY_ID.

        Raises:
            ValueError: If either setting is missing
        """
        table_name = table_name or os.environ.get("CREDENTIALS_TABLE")
        kms_key_id = kms_key_id or os.environ.get("CREDENTIALS_KMS_KEY_ID")

        if not table_name:
            raise ValueError("CREDENTIALS_TABLE environment variable required")
        if not kms_key_id:
            raise ValueError("CREDENTIALS_KMS_KEY_ID environment variable required")

        self.table = boto3.resource("dynamodb").Table(table_name)
        self.kms = boto3.client("kms")
        self.kms_key_id = kms_key_id

    def get(self, identifier: str) -> Result[str]:
        """
        Retrieve and decrypt the token for an identity.

        Returns:
            Ok(token), Ok("") when nothing is stored, or Err when the stored
            value cannot be read or decrypted
        """
        try:
            response = self.table.get_item(Key={"identifier": identifier})
        except ClientError as e:
            logger.error(f"Failed to read credentials for {identifier}: {e}")
            return err(
                ErrorKind.PERSISTENCE,
                "credential_lookup_failed",
                "Unable to read stored credentials",
            )

        item = response.get("Item")
        if not item or not item.get("ciphertext"):
            return Ok("")

        try:
            blob = base64.b64decode(item["ciphertext"], validate=True)
            decrypted = self.kms.decrypt(
                CiphertextBlob=blob,
                EncryptionContext={"identifier": identifier},
            )
            plaintext = decrypted["Plaintext"].decode("utf-8")
        except (ClientError, binascii.Error, UnicodeDecodeError) as e:
            logger.error(f"Failed to decrypt credentials for {identifier}: {e}")
            return err(
                ErrorKind.CREDENTIAL,
                "decryption_failed",
                "Stored credentials could not be decrypted",
            )

        return Ok(sanitize_text_field(plaintext))

    def set(self, identifier: str, token: str) -> Result[str]:
        """
        Encrypt and store a token.

        Returns:
            Ok(base64 ciphertext) or Err
        """
        token = sanitize_text_field(token)
        if not token:
            return err(ErrorKind.VALIDATION, "empty_token", "Token must not be empty")

        try:
            encrypted = self.kms.encrypt(
                KeyId=self.kms_key_id,
                Plaintext=token.encode("utf-8"),
                EncryptionContext={"identifier": identifier},
            )
        except ClientError as e:
            logger.error(f"Failed to encrypt credentials for {identifier}: {e}")
            return err(
                ErrorKind.CREDENTIAL,
                "encryption_failed",
                "Credentials could not be encrypted",
            )

        ciphertext = base64.b64encode(encrypted["CiphertextBlob"]).decode("ascii")

        try:
            self.table.put_item(
                Item={
                    "identifier": identifier,
                    "ciphertext": ciphertext,
                    "updated_at": datetime.now(UTC).isoformat(),
                }
            )
        except ClientError as e:
            logger.error(f"Failed to store credentials for {identifier}: {e}")
            return err(
                ErrorKind.PERSISTENCE,
                "credential_store_failed",
                "Unable to store credentials",
            )

        logger.info(f"Stored credentials for {identifier}")
        return Ok(ciphertext)

    def clear(self, identifier: str) -> bool:
        """
        Remove the stored token.

        Returns:
            True if a token was removed, False otherwise
        """
        try:
            response = self.table.delete_item(
                Key={"identifier": identifier},
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            logger.error(f"Failed to clear credentials for {identifier}: {e}")
            return False

        return bool(response.get("Attributes"))
