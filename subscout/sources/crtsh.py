"""Certificate Transparency source (crt.sh)."""

from typing import Any, List, Set

from .base import BaseSource, register_source


@register_source
class CrtShSource(BaseSource):
    """
    Enumerate subdomains via Certificate Transparency logs.

    crt.sh returns one JSON object per logged certificate. Its ``name_value``
    field holds every name the certificate covers, one per line, which may
    include wildcards.
    """

    name = "crtsh"
    default_url = "https://crt.sh/?q=%25.{domain}&output=json"

    def fetch(self, domain: str) -> List[dict]:
        data = self.get_json(self.build_url(domain))

        # crt.sh answers "no results" with an empty list
        if not isinstance(data, list):
            raise self.malformed(f"expected a list of certificates, got {type(data).__name__}")

        return data

    def normalize(self, record: Any, domain: str) -> Set[str]:
        subdomains = set()
        domain = domain.lower()

        for cert in record:
            if not isinstance(cert, dict):
                continue
            names = cert.get("name_value")
            if not isinstance(names, str):
                continue
            for name in names.split("\n"):
                self._process_name(name, domain, subdomains)

        return subdomains

    def _process_name(self, name: str, domain: str, subdomains: Set[str]) -> None:
        name = name.strip().lower()

        # "*.example.com" stands for names under example.com
        if name.startswith("*."):
            name = name[2:]

        if name and name.endswith(domain):
            subdomains.add(name)
