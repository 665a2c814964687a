"""Configuration Management for DocBridge

Runtime overrides live in a DynamoDB table with a single partition key
'Configuration' holding two reserved items:
- Default: System default values (read-only)
- Custom: Operator overrides

ConfigurationManager merges Custom -> Default. ImportSettings layers those
parameters on top of environment variables and built-in constants to give
the webhook everything it needs for one request.
"""

import logging
import os
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

import boto3
from botocore.exceptions import ClientError

from docbridge_common import constants

logger = logging.getLogger(__name__)


class ConfigurationManager:
    """
    Reads Default/Custom configuration items from DynamoDB.

    Usage:
        config_manager = ConfigurationManager()
        config = config_manager.get_effective_config()

    Design Decisions:
        - No caching: every call reads DynamoDB so overrides apply immediately
        - Fails fast: table access errors propagate to the caller
    """

    def __init__(self, table_name: str | None = None):
        """
        Initialize configuration manager.

        Args:
            table_name: Configuration table name. If not provided, reads from
                       CONFIGURATION_TABLE_NAME environment variable.

        Raises:
            ValueError: If table_name not provided and env var not set
        """
        table_name = table_name or os.environ.get("CONFIGURATION_TABLE_NAME")
        if not table_name:
            raise ValueError(
                "Configuration table name not provided. "
                "Set CONFIGURATION_TABLE_NAME environment variable or provide table_name parameter."
            )

        self.dynamodb = boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)
        self.table_name = table_name

        logger.info(f"Initialized ConfigurationManager with table: {table_name}")

    def get_configuration_item(self, config_type: str) -> dict[str, Any] | None:
        """
        Retrieve one configuration item ('Default' or 'Custom').

        Raises:
            ClientError: If DynamoDB access fails
        """
        try:
            response = self.table.get_item(Key={"Configuration": config_type})
        except ClientError:
            logger.exception(f"Error retrieving {config_type} configuration")
            raise

        item = response.get("Item")
        if not item:
            logger.debug(f"{config_type} configuration not found")
        return item

    def get_effective_config(self) -> dict[str, Any]:
        """Merge Custom over Default."""
        default_config = self._remove_partition_key(self.get_configuration_item("Default"))
        custom_config = self._remove_partition_key(self.get_configuration_item("Custom"))

        effective_config = deepcopy(default_config)
        effective_config.update(custom_config)

        logger.debug(f"Effective configuration keys: {list(effective_config.keys())}")
        return effective_config

    @staticmethod
    def _remove_partition_key(item: dict[str, Any] | None) -> dict[str, Any]:
        if not item:
            return {}
        item_copy = dict(item)
        item_copy.pop("Configuration", None)
        return item_copy


def parse_list(value: Any) -> tuple[str, ...]:
    """
    Normalize a list setting given as a comma string or a sequence.

    Empty entries are dropped and whitespace is trimmed.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return tuple(item.strip() for item in items if item and item.strip())


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret env/config booleans such as "true", "0", True."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ImportSettings:
    """
    Effective settings for one webhook request.

    Attributes:
        sideload_domains: Hostnames whose images are sideloaded
        allowed_origins: Origins allowed to read webhook responses
        strip_wrapping_div: Strip a single attribute-less wrapping <div>
        admin_url: CMS admin base URL used for edit links
        source_api_base: Source service API base URL
        source_api_timeout: Timeout for metadata/content requests (seconds)
        media_download_timeout: Timeout for media downloads (seconds)
        image_host_families: Host -> path prefix map for original-asset lookup
    """

    sideload_domains: tuple[str, ...] = constants.DEFAULT_SIDELOAD_DOMAINS
    allowed_origins: tuple[str, ...] = constants.DEFAULT_ALLOWED_ORIGINS
    strip_wrapping_div: bool = True
    admin_url: str = constants.DEFAULT_ADMIN_URL
    source_api_base: str = constants.SOURCE_API_BASE
    source_api_timeout: float = constants.SOURCE_API_TIMEOUT
    media_download_timeout: float = constants.MEDIA_DOWNLOAD_TIMEOUT
    image_host_families: dict[str, str] = field(
        default_factory=lambda: dict(constants.IMAGE_HOST_FAMILIES)
    )

    @classmethod
    def load(
        cls,
        config_manager: ConfigurationManager | None = None,
        environ: dict[str, str] | None = None,
    ) -> "ImportSettings":
        """
        Resolve settings: constants < environment < configuration table.

        Args:
            config_manager: Optional configuration table reader
            environ: Environment mapping (defaults to os.environ)

        Returns:
            ImportSettings with every override applied
        """
        env = os.environ if environ is None else environ
        settings = cls()

        if env.get("SIDELOAD_IMAGE_DOMAINS"):
            settings.sideload_domains = parse_list(env["SIDELOAD_IMAGE_DOMAINS"])
        if env.get("WEBHOOK_ALLOWED_ORIGINS"):
            settings.allowed_origins = parse_list(env["WEBHOOK_ALLOWED_ORIGINS"])
        if "STRIP_WRAPPING_DIV" in env:
            settings.strip_wrapping_div = parse_bool(env["STRIP_WRAPPING_DIV"], default=True)
        if env.get("CMS_ADMIN_URL"):
            settings.admin_url = env["CMS_ADMIN_URL"].rstrip("/")
        if env.get("SOURCE_API_BASE"):
            settings.source_api_base = env["SOURCE_API_BASE"].rstrip("/")
        if env.get("SOURCE_API_TIMEOUT"):
            settings.source_api_timeout = float(env["SOURCE_API_TIMEOUT"])
        if env.get("MEDIA_DOWNLOAD_TIMEOUT"):
            settings.media_download_timeout = float(env["MEDIA_DOWNLOAD_TIMEOUT"])

        if config_manager is not None:
            config = config_manager.get_effective_config()

            domains = parse_list(config.get("sideload_image_domains"))
            if domains:
                settings.sideload_domains = domains

            origins = parse_list(config.get("webhook_allowed_origins"))
            if origins:
                settings.allowed_origins = origins

            if "strip_wrapping_div" in config:
                settings.strip_wrapping_div = parse_bool(
                    config["strip_wrapping_div"], default=settings.strip_wrapping_div
                )

        logger.info(
            f"Import settings: domains={list(settings.sideload_domains)}, "
            f"origins={list(settings.allowed_origins)}, "
            f"strip_wrapping_div={settings.strip_wrapping_div}"
        )
        return settings
