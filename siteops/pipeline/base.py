"""
Stage result contracts.

StepResult is the uniform per-step record the orchestrator aggregates.
InsightsOutcome models the optional insights step: Ok(insights) or
Skipped(reason), never an exception.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class StepResult:
    """Outcome of one pipeline step."""
    success: bool
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    skipped: bool = False

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error, data=None):
        return cls(success=False, error=error, data=data)

    @classmethod
    def skip(cls, reason=None):
        return cls(success=False, error=reason, skipped=True)

    def to_dict(self):
        out = {'success': self.success}
        if self.error is not None:
            out['error'] = self.error
        if self.data is not None:
            out['data'] = self.data
        if self.skipped:
            out['skipped'] = True
        return out


@dataclass(frozen=True)
class InsightsOutcome:
    """Ok(insights) when insights exist, Skipped(reason) when they could not be produced."""
    insights: List[str] = field(default_factory=list)
    skipped_reason: Optional[str] = None
    cached: bool = False

    @classmethod
    def ok(cls, insights, cached=False):
        return cls(insights=list(insights), cached=cached)

    @classmethod
    def skipped(cls, reason):
        return cls(skipped_reason=reason)

    @property
    def is_ok(self):
        return self.skipped_reason is None

    def to_step(self):
        if self.is_ok:
            return StepResult.ok({'insights': self.insights, 'cached': self.cached})
        return StepResult.skip(self.skipped_reason)
