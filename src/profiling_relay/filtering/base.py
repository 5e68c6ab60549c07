"""
Base classes for the capture decision chain
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass
class FilterResult:
    """Result of a capture decision stage"""

    should_capture: bool
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.should_capture


@dataclass(frozen=True)
class CaptureRequest:
    """The unit of work being considered for profiling"""

    kind: str
    components: Tuple[str, ...]
    subject_override: Optional[bool] = None


class DecisionFilter(ABC):
    """Abstract base class for decision stages"""

    @abstractmethod
    def check(self, request: CaptureRequest) -> FilterResult:
        """Determine if the unit of work may be captured"""
        pass
