"""
Capture decision engine

Combines the administrative switch, a per-subject override, the sampling gate
and the include/exclude matchers into one answer. Stages run in a fixed order
and the first rejection wins.
"""

import random
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from .base import CaptureRequest, DecisionFilter, FilterResult
from .matcher import PatternSet, compile_patterns
from .sampling import should_sample, validate_sample_rate

if TYPE_CHECKING:
    from ..config import RelayConfig


class EnabledFilter(DecisionFilter):
    def __init__(self, enabled: bool):
        self.enabled = enabled

    def check(self, request: CaptureRequest) -> FilterResult:
        if not self.enabled:
            return FilterResult(False, reason="disabled")
        return FilterResult(True)


class SubjectOverrideFilter(DecisionFilter):
    """Lets the subject (e.g. an authenticated user) opt out"""

    def check(self, request: CaptureRequest) -> FilterResult:
        if request.subject_override is False:
            return FilterResult(False, reason="subject_opted_out")
        return FilterResult(True)


class SamplingFilter(DecisionFilter):
    def __init__(self, sample_rate: float, draw: Callable[[], float] = random.random):
        self.sample_rate = validate_sample_rate(sample_rate)
        self._draw = draw

    def check(self, request: CaptureRequest) -> FilterResult:
        if not should_sample(self.sample_rate, self._draw):
            return FilterResult(
                False, reason="not_sampled", metadata={"sample_rate": self.sample_rate}
            )
        return FilterResult(True)


class IncludeFilter(DecisionFilter):
    """Passes only when an include pattern for the request kind matches"""

    def __init__(self, patterns: Dict[str, PatternSet]):
        self.patterns = patterns

    def check(self, request: CaptureRequest) -> FilterResult:
        pattern_set = self.patterns.get(request.kind)
        if pattern_set is None or not pattern_set.matches(request.components):
            return FilterResult(False, reason="not_included")
        return FilterResult(True)


class ExcludeFilter(DecisionFilter):
    """Rejects when an exclude pattern for the request kind matches"""

    def __init__(self, patterns: Dict[str, PatternSet]):
        self.patterns = patterns

    def check(self, request: CaptureRequest) -> FilterResult:
        pattern_set = self.patterns.get(request.kind)
        if pattern_set is not None:
            matched = pattern_set.first_match(request.components)
            if matched is not None:
                return FilterResult(
                    False, reason="excluded", metadata={"pattern": matched}
                )
        return FilterResult(True)


class ProfilingDecision:
    """Decides whether a unit of work should be profiled

    Pattern lists and the sample rate are validated and compiled when the
    decision is built, so a misconfiguration fails here rather than on the
    first request.
    """

    def __init__(
        self,
        config: "RelayConfig",
        draw: Callable[[], float] = random.random,
    ):
        self.config = config
        self._include = {kind: compile_patterns(p) for kind, p in config.include.items()}
        self._exclude = {kind: compile_patterns(p) for kind, p in config.exclude.items()}
        self.filters: List[DecisionFilter] = [
            EnabledFilter(config.enabled),
            SubjectOverrideFilter(),
            SamplingFilter(config.sample_rate, draw),
            IncludeFilter(self._include),
            ExcludeFilter(self._exclude),
        ]

    def evaluate(
        self,
        kind: str,
        components: Sequence[str],
        subject_override: Optional[bool] = None,
    ) -> FilterResult:
        """Apply all stages and return the final decision"""
        request = CaptureRequest(
            kind=kind,
            components=tuple(components),
            subject_override=subject_override,
        )
        for filter_obj in self.filters:
            result = filter_obj.check(request)
            if not result.should_capture:
                return result
        return FilterResult(True, reason="all_filters_passed")

    def should_capture(
        self,
        kind: str,
        components: Sequence[str],
        subject_override: Optional[bool] = None,
    ) -> bool:
        return self.evaluate(kind, components, subject_override).should_capture


def should_capture(
    subject_components: Sequence[str],
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
    subject_override: Optional[bool] = None,
    sampling_rate: float = 1.0,
    enabled: bool = True,
    draw: Callable[[], float] = random.random,
) -> bool:
    """Functional form of ``ProfilingDecision`` for a single subject kind"""
    include = compile_patterns(include_patterns)
    exclude = compile_patterns(exclude_patterns)
    validate_sample_rate(sampling_rate)

    if not enabled:
        return False
    if subject_override is False:
        return False
    if not should_sample(sampling_rate, draw):
        return False
    if not include.matches(subject_components):
        return False
    if exclude.matches(subject_components):
        return False
    return True
