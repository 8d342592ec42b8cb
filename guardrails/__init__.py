"""
Guardrails - 스테이지 입력/출력 검증

체크(GuardrailCheck) → 게이트(GuardrailGate) → 판정(GateDecision)
"""

from .base import (
    GateDirection,
    GuardrailPolicy,
    GuardrailVerdict,
    GuardrailCheck,
    GUARDRAIL_ERROR,
)
from .gate import GateDecision, GuardrailGate
from .registry import GuardrailRegistry, build_default_registry

__all__ = [
    "GateDirection",
    "GuardrailPolicy",
    "GuardrailVerdict",
    "GuardrailCheck",
    "GUARDRAIL_ERROR",
    "GateDecision",
    "GuardrailGate",
    "GuardrailRegistry",
    "build_default_registry",
]
