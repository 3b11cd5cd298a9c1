"""Configuration loader and validation for reconciliation settings."""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging
import os

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "TALLY_API_TOKEN"


class EndpointsConfig(BaseModel):
    """REST paths on the accounting platform."""

    transactions: str = "/authenticated/transactions2/api/transactions"
    transaction: str = "/authenticated/transactions2/api/transactions/{transaction_id}"
    reconcile: str = "/authenticated/transactions2/api/reconcile/{kind}"
    packaging_extract: str = "/authenticated/transactions3/api/packaging/extract"


class ApiConfig(BaseModel):
    """Configuration for the HTTP adapter."""

    base_url: str = "http://localhost:3000"
    timeout_seconds: float = 30.0
    token: Optional[str] = None
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)

    def resolve_token(self) -> Optional[str]:
        """Token from config, falling back to the environment."""
        return self.token or os.environ.get(TOKEN_ENV_VAR)


class ClassificationConfig(BaseModel):
    """Capture metadata values that identify each transaction kind."""

    bank_sources: list[str] = Field(
        default_factory=lambda: ["bank_statement_ocr", "bank_statement_upload"]
    )
    credit_card_sources: list[str] = Field(
        default_factory=lambda: ["credit_card_statement_ocr", "credit_card_statement_upload"]
    )
    receipt_sources: list[str] = Field(default_factory=lambda: ["purchase_invoice_ocr"])
    receipt_source_substring: str = "purchase"
    receipt_mechanisms: list[str] = Field(default_factory=lambda: ["ocr"])


class MatchingConfig(BaseModel):
    """Configuration for candidate selection."""

    amount_tolerance: Decimal = Decimal("0.01")
    pool_page_size: int = 200


class ExtractionConfig(BaseModel):
    """Retry settings for the packaging extraction service."""

    max_retries: int = 3
    initial_delay_ms: int = 1000
    network_retries: int = 1
    network_retry_delay_ms: int = 0
    rate_limit_markers: list[str] = Field(
        default_factory=lambda: ["temporarily busy", "try again", "temporarily unavailable"]
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "api": {
            "base_url": "http://localhost:3000",
            "timeout_seconds": 30.0,
            "endpoints": {
                "transactions": "/authenticated/transactions2/api/transactions",
                "transaction": "/authenticated/transactions2/api/transactions/{transaction_id}",
                "reconcile": "/authenticated/transactions2/api/reconcile/{kind}",
                "packaging_extract": "/authenticated/transactions3/api/packaging/extract",
            },
        },
        "classification": {
            "bank_sources": ["bank_statement_ocr", "bank_statement_upload"],
            "credit_card_sources": [
                "credit_card_statement_ocr",
                "credit_card_statement_upload",
            ],
            "receipt_sources": ["purchase_invoice_ocr"],
            "receipt_source_substring": "purchase",
            "receipt_mechanisms": ["ocr"],
        },
        "matching": {
            "amount_tolerance": "0.01",
            "pool_page_size": 200,
        },
        "extraction": {
            "max_retries": 3,
            "initial_delay_ms": 1000,
            "network_retries": 1,
            "network_retry_delay_ms": 0,
            "rate_limit_markers": [
                "temporarily busy",
                "try again",
                "temporarily unavailable",
            ],
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Tally reconciliation engine configuration
# The API token is read from the TALLY_API_TOKEN environment variable
# unless api.token is set here.

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
