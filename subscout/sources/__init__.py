"""Subdomain data sources for SubScout."""

from typing import List

from ..core.config import Config
from ..core.logger import get_logger
from .base import BaseSource, SOURCE_REGISTRY, register_source
from .crtsh import CrtShSource
from .alienvault_otx import AlienVaultOTXSource

logger = get_logger("sources")


def build_sources(config: Config) -> List[BaseSource]:
    """Instantiate every registered source that is enabled in the config."""
    sources = []

    for name in config.sources:
        source_class = SOURCE_REGISTRY.get(name)
        if source_class is None:
            logger.warning(f"No source registered under '{name}', skipping")
            continue

        source = source_class(config)
        if source.is_enabled:
            sources.append(source)
            logger.debug(f"Initialized source: {name}")
        else:
            source.close()
            logger.debug(f"Source {name} is disabled, skipping")

    return sources


__all__ = [
    "BaseSource",
    "SOURCE_REGISTRY",
    "register_source",
    "build_sources",
    "CrtShSource",
    "AlienVaultOTXSource",
]
