"""Configuration classes for Togglr SDK."""

import dataclasses
import logging
import ssl
from dataclasses import dataclass, field
from typing import Optional, Union

from togglr.cache import CacheConfig
from togglr.retry import BackoffConfig

logger = logging.getLogger("togglr")

DEFAULT_BASE_URL = "http://localhost:8090"


@dataclass
class ClientConfig:
    """Main configuration for the Togglr client."""

    api_key: str
    """API key sent with every request."""

    base_url: str = DEFAULT_BASE_URL
    """Base URL for the API."""

    timeout_ms: int = 30000
    """Request timeout in milliseconds."""

    retries: int = 3
    """Retries after the initial attempt for retryable failures."""

    cache_enabled: bool = True
    cache_max_size: int = 1000
    cache_ttl_seconds: float = 60

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    """Backoff between retries."""

    client_cert: Optional[str] = None
    """Client certificate file for mutual TLS."""

    client_key: Optional[str] = None
    """Client private key file for mutual TLS."""

    ca_cert: Optional[str] = None
    """CA bundle used to verify the server."""

    insecure: bool = False
    """Skip TLS verification. Unsafe; only for local development."""

    logger: Optional[logging.Logger] = None
    """Logger used by the client instead of the ``togglr`` logger."""

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("api_key is required")
        if not self.base_url:
            raise ValueError("base_url is required")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.cache_enabled:
            if self.cache_max_size < 1:
                raise ValueError("cache_max_size must be >= 1")
            if self.cache_ttl_seconds < 0:
                raise ValueError("cache_ttl_seconds must be >= 0")
        if bool(self.client_cert) != bool(self.client_key):
            raise ValueError("client_cert and client_key must be set together")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def cache_config(self) -> CacheConfig:
        return CacheConfig(
            enabled=self.cache_enabled,
            max_size=self.cache_max_size,
            ttl_seconds=self.cache_ttl_seconds,
        )

    def with_base_url(self, base_url: str) -> "ClientConfig":
        return dataclasses.replace(self, base_url=base_url)

    def with_timeout(self, timeout_ms: int) -> "ClientConfig":
        return dataclasses.replace(self, timeout_ms=timeout_ms)

    def with_retries(self, retries: int) -> "ClientConfig":
        return dataclasses.replace(self, retries=retries)

    def with_backoff(self, backoff: BackoffConfig) -> "ClientConfig":
        return dataclasses.replace(self, backoff=backoff)

    def with_cache(
        self,
        enabled: bool,
        max_size: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
    ) -> "ClientConfig":
        """Omitted size and TTL keep their current values."""
        return dataclasses.replace(
            self,
            cache_enabled=enabled,
            cache_max_size=self.cache_max_size if max_size is None else max_size,
            cache_ttl_seconds=self.cache_ttl_seconds if ttl_seconds is None else ttl_seconds,
        )

    def with_logger(self, client_logger: logging.Logger) -> "ClientConfig":
        return dataclasses.replace(self, logger=client_logger)

    def with_tls(
        self,
        client_cert: Optional[str] = None,
        client_key: Optional[str] = None,
        ca_cert: Optional[str] = None,
    ) -> "ClientConfig":
        return dataclasses.replace(
            self,
            client_cert=client_cert,
            client_key=client_key,
            ca_cert=ca_cert,
        )

    def with_insecure(self, insecure: bool = True) -> "ClientConfig":
        return dataclasses.replace(self, insecure=insecure)

    def build_ssl_verify(self) -> Union[bool, ssl.SSLContext]:
        """
        Build the ``verify`` argument for httpx.

        Returns:
            False when insecure, an SSLContext when a CA or client
            certificate is configured, True otherwise
        """
        if self.insecure:
            logger.warning("TLS verification is disabled; do not use in production")
            if not self.client_cert:
                return False
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        elif not self.ca_cert and not self.client_cert:
            return True
        else:
            context = ssl.create_default_context(cafile=self.ca_cert)

        if self.client_cert and self.client_key:
            context.load_cert_chain(certfile=self.client_cert, keyfile=self.client_key)
        return context
