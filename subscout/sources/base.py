"""Base source class for SubScout."""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Set, Type, TypeVar

import requests

from ..core.config import Config
from ..core.domain import SourceResult
from ..core.errors import ErrorCodes, SourceFetchError
from ..core.logger import get_logger

SOURCE_REGISTRY: Dict[str, Type["BaseSource"]] = {}

S = TypeVar("S", bound=Type["BaseSource"])


def register_source(cls: S) -> S:
    """Class decorator that makes a source available to build_sources()."""
    if cls.name in SOURCE_REGISTRY and SOURCE_REGISTRY[cls.name] is not cls:
        raise ValueError(f"Source '{cls.name}' is already registered")
    SOURCE_REGISTRY[cls.name] = cls
    return cls


class BaseSource(ABC):
    """Base class for all subdomain data sources."""

    # Source name used in config and logging
    name: str = "base"

    # Endpoint used when the config does not give one; {domain} is substituted
    default_url: str = ""

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        """
        Initialize source.

        Args:
            config: Configuration instance
            session: HTTP session to use (a new one is created if omitted)
        """
        self.config = config
        self.logger = get_logger(f"source.{self.name}")
        self._source_config = config.get_source_config(self.name)
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        })

    @property
    def is_enabled(self) -> bool:
        return self.config.is_source_enabled(self.name)

    @property
    def timeout(self) -> float:
        """Per-request timeout in seconds."""
        timeout_ms = self._source_config.get("timeout_ms", self.config.adapter_timeout_ms)
        return timeout_ms / 1000.0

    @property
    def url_template(self) -> str:
        return self._source_config.get("url") or self.default_url

    def build_url(self, domain: str) -> str:
        return self.url_template.replace("{domain}", domain)

    def get_json(self, url: str) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            SourceFetchError: On network failure, timeout, non-2xx status or
                a body that is not JSON
        """
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                proxies=self.config.proxy_settings,
            )
        except requests.exceptions.Timeout as e:
            raise SourceFetchError(self.name, ErrorCodes.SRC_TIMEOUT, details=str(e)) from e
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(self.name, ErrorCodes.SRC_CONNECTION_FAILED, details=str(e)) from e

        if not 200 <= response.status_code < 300:
            raise SourceFetchError(
                self.name, ErrorCodes.SRC_BAD_STATUS, details=f"HTTP {response.status_code}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise SourceFetchError(self.name, ErrorCodes.SRC_MALFORMED_PAYLOAD, details=str(e)) from e

    def malformed(self, details: str) -> SourceFetchError:
        return SourceFetchError(self.name, ErrorCodes.SRC_MALFORMED_PAYLOAD, details=details)

    @abstractmethod
    def fetch(self, domain: str) -> Any:
        """
        Fetch the raw payload for a domain.

        Args:
            domain: Validated domain

        Returns:
            Decoded, shape-checked payload for normalize()

        Raises:
            SourceFetchError: If the source cannot deliver a usable payload
        """

    @abstractmethod
    def normalize(self, record: Any, domain: str) -> Set[str]:
        """
        Turn a payload from fetch() into lowercase hostnames ending with domain.

        Args:
            record: Payload returned by fetch()
            domain: Validated domain

        Returns:
            Set of hostnames
        """

    def run(self, domain: str, clock: Callable[[], float] = time.monotonic) -> SourceResult:
        """
        Fetch and normalize with error handling.

        Never raises: any failure is logged and reported through the
        returned SourceResult with an empty hostname set.
        """
        start = clock()
        try:
            self.logger.debug(f"Querying {self.name} for {domain}")
            record = self.fetch(domain)
            subdomains = self.normalize(record, domain)
        except SourceFetchError as e:
            self.logger.warning_with_data(
                f"{self.name} failed for {domain}: {e}",
                {"source": self.name, "domain": domain, "code": e.code},
            )
            return SourceResult(source=self.name, error=str(e), duration_seconds=clock() - start)
        except Exception as e:
            error_msg = f"{self.name} error: {e}"
            self.logger.error_with_data(
                error_msg, {"source": self.name, "domain": domain}, exc_info=True
            )
            return SourceResult(source=self.name, error=error_msg, duration_seconds=clock() - start)

        duration = clock() - start
        self.logger.info_with_data(
            f"{self.name} returned {len(subdomains)} names for {domain} in {duration:.2f}s",
            {"source": self.name, "domain": domain, "count": len(subdomains)},
        )
        return SourceResult(source=self.name, subdomains=subdomains, duration_seconds=duration)

    def close(self) -> None:
        self.session.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(enabled={self.is_enabled})>"
