# natal/core/errors.py
from __future__ import annotations

"""
Error taxonomy for the chart engine.

Every error carries the module stage it was raised in, the assembler stage it
surfaced from (filled by the assembler) and a free-form context bag, so routes
can report *which input* and *which computation* failed without parsing messages.

    ChartError
    ├── InvalidInput   missing/unparseable instant, unknown city, out-of-range coords
    ├── DomainError    mathematically undefined configuration (polar latitude, NaN)
    └── ProviderError  ephemeris / sidereal-time collaborator failed
"""

from typing import Any, Dict, Optional

__all__ = ["ChartError", "InvalidInput", "DomainError", "ProviderError"]


class ChartError(RuntimeError):
    """Categorized engine error (stage + message + context)."""

    code = "chart_error"
    http_status = 500

    def __init__(self, stage: Optional[str], message: str, **context: Any):
        super().__init__(f"{stage}: {message}" if stage else message)
        self.stage = stage
        self.message = message
        self.context: Dict[str, Any] = context
        self.pipeline_stage: Optional[str] = None

    def with_stage(self, stage: str) -> "ChartError":
        """Record the assembler stage; also fills `stage` if the raiser did not know it."""
        self.pipeline_stage = stage
        if not self.stage:
            self.stage = stage
            self.args = (f"{stage}: {self.message}",)
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "stage": self.stage,
            "pipeline_stage": self.pipeline_stage,
            "message": self.message,
            "context": {k: (v if isinstance(v, (int, float, str, bool)) or v is None else str(v))
                        for k, v in self.context.items()},
        }


class InvalidInput(ChartError):
    code = "invalid_input"
    http_status = 400


class DomainError(ChartError):
    code = "domain_error"
    http_status = 422


class ProviderError(ChartError):
    code = "provider_error"
    http_status = 502
