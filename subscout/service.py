"""Query entry point for SubScout."""

from typing import Hashable, Optional

from .aggregator import Aggregator
from .core.cache import CacheStore, create_backend
from .core.config import Config
from .core.domain import QueryResult
from .core.errors import CacheIOError, RateLimitedError
from .core.logger import get_logger
from .core.rate_limiter import RateLimiter
from .core.validation import validate_domain
from .sources import build_sources


class SubdomainService:
    """
    The one entry point callers use: validate, rate-limit, then serve from
    cache or aggregate fresh.

    Only ValidationError and RateLimitedError leave query(). Source and cache
    failures degrade to fewer (or zero) results.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        aggregator: Optional[Aggregator] = None,
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.config = config or Config()
        self.cache = cache if cache is not None else self._build_cache()
        self.aggregator = aggregator or Aggregator(build_sources(self.config))
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=self.config.max_requests,
            time_window_ms=self.config.time_window_ms,
        )
        self.logger = get_logger("service")

    @classmethod
    def from_config(cls, config: Config) -> "SubdomainService":
        """Wire every component from configuration."""
        return cls(config=config)

    def _build_cache(self) -> CacheStore:
        """
        Build the configured cache.

        Raises:
            ConfigError: If the configured backend is unknown
        """
        try:
            backend = create_backend(self.config.cache_backend, self.config.cache_dir)
        except CacheIOError as e:
            # Still serve queries, just without persistence across runs
            get_logger("service").error(f"Cache backend unavailable, using memory: {e}")
            backend = create_backend("memory", self.config.cache_dir)
        return CacheStore(backend, freshness_ms=self.config.cache_freshness_ms)

    def query(self, caller_id: Hashable, raw_input: str, refresh: bool = False) -> QueryResult:
        """
        Find subdomains of the domain named in raw_input.

        Args:
            caller_id: Identity the rate limit is charged to
            raw_input: Domain, optionally with scheme, port or path
            refresh: Skip the cache lookup (the fresh result is still cached)

        Returns:
            QueryResult with sorted subdomains

        Raises:
            ValidationError: If raw_input is not a domain
            RateLimitedError: If the caller is over its limit
        """
        domain = validate_domain(raw_input)

        decision = self.rate_limiter.try_acquire(caller_id)
        if not decision.allowed:
            raise RateLimitedError(decision.retry_after_ms)

        if not refresh:
            entry = self.cache.get(domain)
            if entry is not None:
                self.logger.info(f"Serving {domain} from cache ({len(entry.subdomains)} subdomains)")
                return QueryResult.build(
                    domain, entry.subdomains, from_cache=True, timestamp=entry.timestamp
                )

        subdomains, sources = self.aggregator.run(domain)
        total_failure = bool(sources) and not any(s.ok for s in sources)
        if total_failure and not self.config.cache_total_failures:
            self.logger.warning(f"Every source failed for {domain}, not caching the empty result")
        else:
            self.cache.put(domain, subdomains)

        return QueryResult.build(
            domain, subdomains, from_cache=False, sources=sources, timestamp=self.cache.clock()
        )

    def close(self) -> None:
        self.aggregator.close()
