"""
Capture decisions: pattern matching, sampling and the decision chain
"""

from .base import CaptureRequest, DecisionFilter, FilterResult
from .engine import (
    EnabledFilter,
    ExcludeFilter,
    IncludeFilter,
    ProfilingDecision,
    SamplingFilter,
    SubjectOverrideFilter,
    should_capture,
)
from .matcher import (
    PatternKind,
    PatternSet,
    classify_pattern,
    compile_pattern,
    compile_patterns,
    matches,
)
from .sampling import SamplingGate, should_sample, validate_sample_rate

__all__ = [
    "CaptureRequest",
    "DecisionFilter",
    "FilterResult",
    "EnabledFilter",
    "SubjectOverrideFilter",
    "SamplingFilter",
    "IncludeFilter",
    "ExcludeFilter",
    "ProfilingDecision",
    "should_capture",
    "PatternKind",
    "PatternSet",
    "classify_pattern",
    "compile_pattern",
    "compile_patterns",
    "matches",
    "SamplingGate",
    "should_sample",
    "validate_sample_rate",
]
