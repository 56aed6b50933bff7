from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from healthsync.models.metrics import CanonicalRecord


class BaseExtractor(ABC):
    @abstractmethod
    def extract(
        self,
        samples: List[Any],
        owner_id: str,
        default_timestamp: Any = None,
        now: Optional[datetime] = None,
    ) -> List[CanonicalRecord]:
        """Turn raw samples of one kind into canonical records"""
        pass

    @abstractmethod
    def resolve_field(self, sample: Any, name: str) -> Any:
        """Resolve a single canonical field of a raw sample"""
        pass
