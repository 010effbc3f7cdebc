"""Concurrent multi-source subdomain aggregation."""

import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .core.domain import SourceResult
from .core.logger import get_logger
from .sources.base import BaseSource


def filter_to_domain(names: Iterable[str], domain: str) -> Set[str]:
    """
    Keep only the domain itself and names under it.

    Unlike a plain suffix check this rejects look-alikes such as
    ``evilexample.com`` for ``example.com``.
    """
    pattern = re.compile(r"(?:^|\.)" + re.escape(domain.lower()) + r"$")
    return {name for name in names if pattern.search(name)}


class Aggregator:
    """
    Fan a domain out to every source at once and merge what comes back.

    Sources fail independently: a source that errors contributes nothing and
    the others still count. The join waits for every source, so a query takes
    as long as the slowest source (each bounded by its own timeout).
    """

    def __init__(self, sources: Sequence[BaseSource], max_workers: Optional[int] = None):
        """
        Initialize aggregator.

        Args:
            sources: Sources to query on every discovery
            max_workers: Thread pool size (defaults to one thread per source)
        """
        self.sources = list(sources)
        self.max_workers = max_workers
        self.logger = get_logger("aggregator")

    def collect(self, domain: str) -> List[SourceResult]:
        """
        Run every source against a domain and return each outcome.

        Results are in source order, not completion order.
        """
        if not self.sources:
            self.logger.warning("No sources configured")
            return []

        workers = self.max_workers or len(self.sources)
        results: List[SourceResult] = []

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="subscout-source") as executor:
            futures = [(source, executor.submit(source.run, domain)) for source in self.sources]

            for source, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    # run() is not supposed to raise; keep the join intact if it does
                    error_msg = f"{source.name} crashed: {e}"
                    self.logger.error_with_data(
                        error_msg, {"source": source.name, "domain": domain}, exc_info=True
                    )
                    results.append(SourceResult(source=source.name, error=error_msg))

        return results

    @staticmethod
    def merge(results: Iterable[SourceResult], domain: str) -> Set[str]:
        """Union source results and apply the final domain-scope filter."""
        merged: Set[str] = set()
        for result in results:
            merged.update(name.strip().lower() for name in result.subdomains)
        merged.discard("")
        return filter_to_domain(merged, domain)

    def discover(self, domain: str) -> Set[str]:
        """
        Discover subdomains of a validated domain.

        Returns:
            Set of lowercase hostnames; may be empty
        """
        return self.merge(self.collect(domain), domain)

    def run(self, domain: str) -> Tuple[Set[str], List[SourceResult]]:
        """Collect and merge in one pass, keeping the per-source outcomes."""
        start = time.monotonic()
        results = self.collect(domain)
        subdomains = self.merge(results, domain)

        failed = [r.source for r in results if not r.ok]
        self.logger.info_with_data(
            f"Found {len(subdomains)} subdomains for {domain} in {time.monotonic() - start:.2f}s",
            {"domain": domain, "count": len(subdomains), "failed_sources": failed},
        )
        return subdomains, results

    def close(self) -> None:
        for source in self.sources:
            source.close()
