"""AlienVault OTX passive DNS source."""

from typing import Any, Dict, Set

from .base import BaseSource, register_source


@register_source
class AlienVaultOTXSource(BaseSource):
    """
    Historical DNS observations from AlienVault OTX (Open Threat Exchange).

    The passive DNS endpoint works without an API key; when ``OTX_KEY`` is
    configured it is sent along for the higher quota.
    """

    name = "alienvault_otx"
    default_url = "https://otx.alienvault.com/api/v1/indicators/domain/{domain}/passive_dns"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.config.has_api_key("otx"):
            self.session.headers.update({
                "X-OTX-API-KEY": self.config.get_api_key("otx"),
            })

    def fetch(self, domain: str) -> Dict[str, Any]:
        data = self.get_json(self.build_url(domain))

        if not isinstance(data, dict):
            raise self.malformed(f"expected an object, got {type(data).__name__}")

        records = data.get("passive_dns", [])
        if records is not None and not isinstance(records, list):
            raise self.malformed("'passive_dns' is not a list")

        return data

    def normalize(self, record: Any, domain: str) -> Set[str]:
        subdomains = set()
        domain = domain.lower()

        for entry in record.get("passive_dns") or []:
            if not isinstance(entry, dict):
                continue
            hostname = entry.get("hostname")
            if not isinstance(hostname, str):
                continue
            hostname = hostname.strip().lower()
            if hostname.endswith(domain):
                subdomains.add(hostname)

        return subdomains
