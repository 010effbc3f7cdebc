"""Tests for concurrent aggregation across sources."""

import threading

from subscout.aggregator import Aggregator, filter_to_domain
from subscout.core.errors import SourceFetchError

from conftest import StaticSource


class TestFilterToDomain:
    """Test the final domain-scope filter."""

    def test_rejects_lookalikes(self):
        """Test only the domain and names under it survive."""
        candidates = {"api.example.com", "example.com", "evilexample.com", "example.com.evil.com"}
        assert filter_to_domain(candidates, "example.com") == {"api.example.com", "example.com"}

    def test_dots_are_literal(self):
        assert filter_to_domain({"examplexcom", "a.example.com"}, "example.com") == {"a.example.com"}

    def test_empty(self):
        assert filter_to_domain(set(), "example.com") == set()


class TestAggregator:
    """Test fan-out, fault isolation and merging."""

    def test_merges_sources(self, config):
        aggregator = Aggregator([
            StaticSource(config, name="one", names=["a.example.com", "b.example.com"]),
            StaticSource(config, name="two", names=["b.example.com", "c.example.com"]),
        ])

        assert aggregator.discover("example.com") == {"a.example.com", "b.example.com", "c.example.com"}

    def test_failed_source_does_not_abort_others(self, config):
        """Test one failing source leaves the other's results intact."""
        aggregator = Aggregator([
            StaticSource(config, name="broken", error=SourceFetchError("broken", details="HTTP 503")),
            StaticSource(config, name="healthy", names=["www.example.com", "api.example.com"]),
        ])

        assert aggregator.discover("example.com") == {"www.example.com", "api.example.com"}

    def test_unexpected_exception_isolated(self, config):
        aggregator = Aggregator([
            StaticSource(config, name="buggy", error=KeyError("name_value")),
            StaticSource(config, name="healthy", names=["www.example.com"]),
        ])

        results = aggregator.collect("example.com")

        assert [r.source for r in results] == ["buggy", "healthy"]
        assert not results[0].ok
        assert results[1].ok

    def test_crash_outside_run_isolated(self, config):
        """Test a source whose run() itself raises still yields a result."""
        crashing = StaticSource(config, name="crashing")

        def explode(domain):
            raise RuntimeError("thread died")

        crashing.run = explode
        aggregator = Aggregator([crashing, StaticSource(config, name="healthy", names=["www.example.com"])])

        results = aggregator.collect("example.com")

        assert "thread died" in results[0].error
        assert aggregator.merge(results, "example.com") == {"www.example.com"}

    def test_all_sources_fail(self, config):
        """Test total failure is an empty set, not an error."""
        aggregator = Aggregator([
            StaticSource(config, name="one", error=SourceFetchError("one")),
            StaticSource(config, name="two", error=SourceFetchError("two")),
        ])

        assert aggregator.discover("example.com") == set()

    def test_case_insensitive_dedup(self, config):
        """Test names differing only in case merge into one entry."""
        aggregator = Aggregator([
            StaticSource(config, name="one", names=["Sub.Example.com"]),
            StaticSource(config, name="two", names=["SUB.example.com"]),
        ])

        assert aggregator.discover("example.com") == {"sub.example.com"}

    def test_final_filter_applied(self, config):
        """Test names that pass a source's loose suffix check are still dropped."""
        aggregator = Aggregator([
            StaticSource(config, names=["api.example.com", "evilexample.com", "example.com"]),
        ])

        assert aggregator.discover("example.com") == {"api.example.com", "example.com"}

    def test_sources_run_concurrently(self, config):
        """Test every source is in flight at the same time."""
        barrier = threading.Barrier(3)

        def rendezvous():
            barrier.wait(timeout=5)

        aggregator = Aggregator([
            StaticSource(config, name=f"s{i}", names=[f"s{i}.example.com"], before_fetch=rendezvous)
            for i in range(3)
        ])

        results = aggregator.collect("example.com")

        assert all(r.ok for r in results)
        assert aggregator.merge(results, "example.com") == {
            "s0.example.com", "s1.example.com", "s2.example.com",
        }

    def test_waits_for_slow_source(self, config):
        """Test a slow source's answer is not dropped."""
        aggregator = Aggregator([
            StaticSource(config, name="fast", names=["fast.example.com"]),
            StaticSource(config, name="slow", names=["slow.example.com"], delay=0.2),
        ])

        assert aggregator.discover("example.com") == {"fast.example.com", "slow.example.com"}

    def test_no_sources(self):
        assert Aggregator([]).discover("example.com") == set()

    def test_run_returns_outcomes(self, config):
        aggregator = Aggregator([
            StaticSource(config, name="broken", error=SourceFetchError("broken")),
            StaticSource(config, name="healthy", names=["www.example.com"]),
        ])

        subdomains, results = aggregator.run("example.com")

        assert subdomains == {"www.example.com"}
        assert [r.ok for r in results] == [False, True]
