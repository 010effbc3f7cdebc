"""
SubScout - Passive Subdomain Discovery
======================================

Finds subdomains of a domain by querying public data sources concurrently,
merging and filtering their answers, caching results per domain and
rate-limiting each caller.
"""

__version__ = "1.0.0"
__author__ = "Security Team"

from .aggregator import Aggregator, filter_to_domain
from .service import SubdomainService

__all__ = ["Aggregator", "filter_to_domain", "SubdomainService", "__version__"]
