#!/usr/bin/env python3
"""Configuration management for the Cosmos/EVM exporter.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from a TOML file or from environment variables,
with sensible defaults where appropriate.
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import urlparse

from web3 import Web3

from .utils.fetch_client import BackoffPolicy

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 2113


def _validate_http_url(url: str, name: str) -> None:
    """Reject empty or non-HTTP endpoint URLs."""
    if not url:
        raise ValueError(f"{name} is required")

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid {name} scheme: {parsed.scheme or '(none)'}. Expected http or https"
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    """Upstream endpoints.

    Attributes:
        rpc_endpoint: CometBFT RPC endpoint of the consensus layer
        eth_endpoint: JSON-RPC endpoint of the execution layer
    """

    rpc_endpoint: str
    eth_endpoint: str

    def __post_init__(self) -> None:
        """Validate endpoint configuration."""
        _validate_http_url(self.rpc_endpoint, "rpc_endpoint")
        _validate_http_url(self.eth_endpoint, "eth_endpoint")

        # Paths are appended to the CL endpoint
        if self.rpc_endpoint.endswith('/'):
            object.__setattr__(self, 'rpc_endpoint', self.rpc_endpoint.rstrip('/'))


@dataclass(frozen=True, slots=True)
class ValidatorConfig:
    """Identity of the validator being monitored.

    Attributes:
        evm_address: Coinbase address the validator uses on the execution layer
        target_validator: Proposer address of the validator on the consensus layer
    """

    evm_address: str
    target_validator: str

    def __post_init__(self) -> None:
        """Validate validator configuration."""
        if not self.evm_address:
            raise ValueError("evm_address is required")

        if not Web3.is_address(self.evm_address):
            raise ValueError(f"Invalid evm_address: {self.evm_address}")

        # Execution blocks report the coinbase in checksum form
        checksummed = Web3.to_checksum_address(self.evm_address)
        if checksummed != self.evm_address:
            object.__setattr__(self, 'evm_address', checksummed)

        if not self.target_validator or not self.target_validator.strip():
            raise ValueError("target_validator is required")


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Timing and retry settings for polling and upstream calls."""
    poll_interval: float = 0.5  # seconds between polling iterations
    error_retry_delay: float = 2.0  # pause after a failed iteration
    metrics_update_interval: float = 5.0  # height and gap gauge refresh
    request_timeout: float = 10.0  # HTTP request timeout in seconds
    block_retry_attempts: int = 6
    block_retry_delay: float = 2.0
    height_retry_attempts: int = 4
    height_retry_base_delay: float = 1.0
    el_block_retry_attempts: int = 2

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.poll_interval < 0:
            raise ValueError(f"Poll interval must be non-negative, got {self.poll_interval}")
        if self.error_retry_delay < 0:
            raise ValueError(f"Error retry delay must be non-negative, got {self.error_retry_delay}")
        if self.metrics_update_interval <= 0:
            raise ValueError(
                f"Metrics update interval must be positive, got {self.metrics_update_interval}"
            )

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        for name in ('block_retry_attempts', 'height_retry_attempts', 'el_block_retry_attempts'):
            attempts = getattr(self, name)
            if attempts < 1:
                raise ValueError(f"{name} must be at least 1, got {attempts}")
            if attempts > 10:
                raise ValueError(f"{name} too high (max 10), got {attempts}")

        if self.block_retry_delay < 0 or self.height_retry_base_delay < 0:
            raise ValueError("Retry delays must be non-negative")

    @property
    def block_policy(self) -> BackoffPolicy:
        """Constant backoff used for consensus block queries."""
        return BackoffPolicy.constant(self.block_retry_attempts, self.block_retry_delay)

    @property
    def height_policy(self) -> BackoffPolicy:
        """Exponential backoff used for height queries."""
        return BackoffPolicy.exponential_backoff(
            self.height_retry_attempts, self.height_retry_base_delay
        )

    @property
    def execution_block_policy(self) -> BackoffPolicy:
        """Exponential backoff used for execution block queries."""
        return BackoffPolicy.exponential_backoff(
            self.el_block_retry_attempts, self.height_retry_base_delay
        )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Log output settings.

    Attributes:
        log_level: Logging level name
        log_format: "text" or "json"
        enable_stdout: Write log lines to stdout
        enable_file_log: Append log lines to log_file
        log_file: Path of the log file
    """

    log_level: str = "INFO"
    log_format: str = "text"
    enable_stdout: bool = True
    enable_file_log: bool = False
    log_file: str = ""

    SUPPORTED_FORMATS: ClassVar[set[str]] = {'text', 'json'}
    SUPPORTED_LEVELS: ClassVar[set[str]] = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        level = self.log_level.upper()
        if level not in self.SUPPORTED_LEVELS:
            raise ValueError(
                f"Unsupported log level: {self.log_level}. "
                f"Supported levels: {', '.join(sorted(self.SUPPORTED_LEVELS))}"
            )
        object.__setattr__(self, 'log_level', level)

        if self.log_format not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported log format: {self.log_format}. "
                f"Supported formats: {', '.join(sorted(self.SUPPORTED_FORMATS))}"
            )

        if self.enable_file_log and not self.log_file:
            raise ValueError("log_file is required when enable_file_log is set")


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    """Main configuration for the exporter.

    Attributes:
        endpoints: Consensus and execution endpoints
        validator: Addresses of the monitored validator
        monitoring: Polling and retry settings
        logging: Log output settings
        metrics_port: Port serving the Prometheus /metrics endpoint
    """

    endpoints: EndpointConfig
    validator: ValidatorConfig
    monitoring: MonitoringConfig = MonitoringConfig()
    logging: LoggingConfig = LoggingConfig()
    metrics_port: int = DEFAULT_METRICS_PORT

    def __post_init__(self) -> None:
        """Validate exporter configuration."""
        port = self.parse_port(self.metrics_port)
        object.__setattr__(self, 'metrics_port', port)

    @staticmethod
    def parse_port(value: Any) -> int:
        """Accept a port as an int, "2113" or the listen-address form ":2113"."""
        if isinstance(value, str):
            value = value.strip().rpartition(':')[2]
            if not value.isdigit():
                raise ValueError(f"Invalid metrics_port: {value!r}")
            value = int(value)

        if not isinstance(value, int) or not 0 < value < 65536:
            raise ValueError(f"Invalid metrics_port: {value!r}")
        return value

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExporterConfig":
        """Build configuration from the flat key layout of config.toml.

        Args:
            data: Parsed TOML document

        Returns:
            ExporterConfig instance

        Raises:
            ValueError: If required keys are missing or invalid
        """
        endpoints = EndpointConfig(
            rpc_endpoint=data.get("rpc_endpoint", ""),
            eth_endpoint=data.get("eth_endpoint", ""),
        )
        validator = ValidatorConfig(
            evm_address=data.get("evm_address", ""),
            target_validator=data.get("target_validator", ""),
        )

        monitoring_data = data.get("monitoring", {})
        if not isinstance(monitoring_data, dict):
            raise ValueError("[monitoring] must be a table")
        unknown = set(monitoring_data) - set(MonitoringConfig.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown monitoring settings: {', '.join(sorted(unknown))}")
        monitoring = MonitoringConfig(**monitoring_data)

        logging_config = LoggingConfig(
            log_level=data.get("log_level", "INFO"),
            log_format=data.get("log_format", "text"),
            enable_stdout=data.get("enable_stdout", True),
            enable_file_log=data.get("enable_file_log", False),
            log_file=data.get("log_file", ""),
        )

        return cls(
            endpoints=endpoints,
            validator=validator,
            monitoring=monitoring,
            logging=logging_config,
            metrics_port=data.get("metrics_port", DEFAULT_METRICS_PORT),
        )

    @classmethod
    def from_toml(cls, path: str | Path) -> "ExporterConfig":
        """Load configuration from a TOML file.

        Raises:
            ValueError: If the file is not valid TOML or values are invalid
            OSError: If the file cannot be read
        """
        with open(path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "ExporterConfig":
        """Load configuration from environment variables.

        Returns:
            ExporterConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        evm_address = os.environ.get("EVM_ADDRESS", "")
        if not evm_address:
            raise ValueError(
                "EVM_ADDRESS environment variable is required. "
                "This should be the validator's coinbase address on the execution layer."
            )

        target_validator = os.environ.get("TARGET_VALIDATOR", "")
        if not target_validator:
            raise ValueError(
                "TARGET_VALIDATOR environment variable is required. "
                "This should be the validator's proposer address on the consensus layer."
            )

        endpoints = EndpointConfig(
            rpc_endpoint=os.environ.get("RPC_ENDPOINT", "http://localhost:26657"),
            eth_endpoint=os.environ.get("ETH_ENDPOINT", "http://localhost:8545"),
        )
        validator = ValidatorConfig(
            evm_address=evm_address,
            target_validator=target_validator,
        )

        monitoring = MonitoringConfig(
            poll_interval=float(os.environ.get("POLL_INTERVAL", "0.5")),
            error_retry_delay=float(os.environ.get("ERROR_RETRY_DELAY", "2")),
            metrics_update_interval=float(os.environ.get("METRICS_UPDATE_INTERVAL", "5")),
            request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "10")),
        )

        logging_config = LoggingConfig(
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "text"),
            enable_stdout=_env_bool("LOG_STDOUT", True),
            enable_file_log=_env_bool("LOG_TO_FILE", False),
            log_file=os.environ.get("LOG_FILE", ""),
        )

        return cls(
            endpoints=endpoints,
            validator=validator,
            monitoring=monitoring,
            logging=logging_config,
            metrics_port=os.environ.get("METRICS_PORT", str(DEFAULT_METRICS_PORT)),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Cosmos/EVM Exporter Configuration")
        logger.info("=" * 60)

        logger.info("Endpoints:")
        logger.info(f"  Consensus RPC: {self.endpoints.rpc_endpoint}")
        logger.info(f"  Execution RPC: {self.endpoints.eth_endpoint}")

        logger.info("Validator:")
        logger.info(f"  Proposer Address: {self.validator.target_validator}")
        logger.info(f"  EVM Address: {self.validator.evm_address}")

        logger.info("Monitoring Settings:")
        logger.info(f"  Poll Interval: {self.monitoring.poll_interval} seconds")
        logger.info(f"  Error Retry Delay: {self.monitoring.error_retry_delay} seconds")
        logger.info(f"  Metrics Update Interval: {self.monitoring.metrics_update_interval} seconds")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")

        logger.info(f"Metrics Port: {self.metrics_port}")
        logger.info("=" * 60)
