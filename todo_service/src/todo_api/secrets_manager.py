"""
Startup overrides for store/cache credentials and the token secret, read from
AWS Secrets Manager.

The secret is a JSON object with any of: dbHost, dbPort, dbName, dbUser,
dbPassword, redisHost, redisPort, redisPassword, jwtSecret.
"""
from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .settings import Settings

logger = logging.getLogger(__name__)

SecretsFetcher = Callable[[Settings], Optional[Dict[str, Any]]]

# secret key -> (settings field, converter)
_OVERRIDES = {
    "dbHost": ("db_host", str),
    "dbPort": ("db_port", int),
    "dbName": ("db_name", str),
    "dbUser": ("db_user", str),
    "dbPassword": ("db_password", str),
    "redisHost": ("redis_host", str),
    "redisPort": ("redis_port", int),
    "redisPassword": ("redis_password", str),
    "jwtSecret": ("jwt_secret", str),
}


class SecretsUnavailableError(RuntimeError):
    """Secrets could not be loaded and the environment does not allow falling back."""


# PUBLIC_INTERFACE
def fetch_aws_secrets(settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Read and parse the configured secret. Returns None when the secret is binary.

    Raises:
        BotoCoreError / ClientError: AWS could not be reached or refused the request.
        ValueError: the secret string is not JSON.
    """
    client = boto3.client("secretsmanager", region_name=settings.aws_region)
    data = client.get_secret_value(SecretId=settings.aws_secret_name)
    secret_string = data.get("SecretString")
    if not secret_string:
        logger.error("Secret is in binary format which is not supported")
        return None
    secrets = json.loads(secret_string)
    logger.info("Secrets successfully loaded from AWS Secrets Manager")
    return secrets


# PUBLIC_INTERFACE
def apply_secrets(settings: Settings, fetcher: SecretsFetcher = fetch_aws_secrets) -> Settings:
    """
    Return `settings` with secret values layered on top.

    When loading fails, non-production environments keep their static settings
    (with a warning); production raises SecretsUnavailableError.
    """
    if not settings.load_aws_secrets:
        return settings

    try:
        secrets = fetcher(settings)
    except (BotoCoreError, ClientError, ValueError) as exc:
        logger.error(f"Error fetching secrets from AWS Secrets Manager: {exc}")
        if settings.is_production:
            raise SecretsUnavailableError("Secrets are required in production") from exc
        logger.warning(f"Using default configuration values for {settings.environment} environment")
        return settings

    if not secrets:
        if settings.is_production:
            raise SecretsUnavailableError("Secret payload is empty or unsupported")
        return settings

    changes: Dict[str, Any] = {}
    for key, (field_name, convert) in _OVERRIDES.items():
        value = secrets.get(key)
        if value in (None, ""):
            continue
        try:
            changes[field_name] = convert(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring secret {key}: unexpected value type")

    if changes:
        logger.info("Configuration updated with secrets from AWS Secrets Manager")
    return dataclasses.replace(settings, **changes)
