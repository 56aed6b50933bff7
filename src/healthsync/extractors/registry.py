from typing import Dict, Iterator, Optional

import structlog

from healthsync.errors import UnknownMetricKind
from healthsync.utils.formatters import format_kind_name
from .generic import GenericExtractor
from .rules import KIND_SPECS, KindSpec

logger = structlog.get_logger(__name__)


class ExtractorRegistry:
    def __init__(self):
        self.extractors: Dict[str, GenericExtractor] = {}
        self.names: Dict[str, str] = {}

    def register(self, spec: KindSpec) -> GenericExtractor:
        extractor = GenericExtractor(spec)
        self.extractors[spec.key] = extractor
        for name in (spec.key, *spec.aliases):
            self.names[format_kind_name(name)] = spec.key
        return extractor

    def get_extractor(self, name: str) -> Optional[GenericExtractor]:
        """Look up by payload key or any alias, ignoring case, spaces and dashes."""
        if name in self.extractors:
            return self.extractors[name]
        key = self.names.get(format_kind_name(name))
        return self.extractors.get(key) if key else None

    def resolve(self, name: str) -> GenericExtractor:
        extractor = self.get_extractor(name)
        if extractor is None:
            logger.warning("unknown_metric_kind", name=name)
            raise UnknownMetricKind(name)
        return extractor

    def __iter__(self) -> Iterator[GenericExtractor]:
        return iter(self.extractors.values())

    def keys(self):
        return self.extractors.keys()


def default_registry() -> ExtractorRegistry:
    registry = ExtractorRegistry()
    for spec in KIND_SPECS:
        registry.register(spec)
    return registry
