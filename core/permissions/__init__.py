"""
Permission system for tool calls.

Static three-tier tool classification (safe / approval-required /
dangerous), the approval gate and the iteration guard.
"""

from .classification import (
    DEFAULT_APPROVAL_REQUIRED_TOOLS,
    DEFAULT_DANGEROUS_TOOLS,
    DEFAULT_SAFE_TOOLS,
    DEFAULT_TOOL_CLASSIFICATION,
    ToolClassification,
)
from .gate import ApprovalGate, HumanGate
from .iterations import IterationBudget, IterationGuard
from .models import (
    ApprovalDecision,
    PendingApproval,
    PendingDecision,
    PendingMaxIterations,
    ToolCategory,
)

__all__ = [
    # Classification
    "ToolCategory",
    "ToolClassification",
    "DEFAULT_SAFE_TOOLS",
    "DEFAULT_APPROVAL_REQUIRED_TOOLS",
    "DEFAULT_DANGEROUS_TOOLS",
    "DEFAULT_TOOL_CLASSIFICATION",
    # Models
    "ApprovalDecision",
    "PendingDecision",
    "PendingApproval",
    "PendingMaxIterations",
    # Gates
    "HumanGate",
    "ApprovalGate",
    "IterationBudget",
    "IterationGuard",
]
