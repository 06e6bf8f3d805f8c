"""ToolClassificationConfig model."""

from pydantic import BaseModel, Field

from core.permissions import (
    DEFAULT_APPROVAL_REQUIRED_TOOLS,
    DEFAULT_DANGEROUS_TOOLS,
    DEFAULT_SAFE_TOOLS,
    ToolClassification,
)


class ToolClassificationConfig(BaseModel):
    """Which tools run freely, which need approval, and which always need it."""

    safe: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_SAFE_TOOLS),
        description="Tools that never need approval",
    )
    approval_required: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_APPROVAL_REQUIRED_TOOLS),
        description="Tools that need approval unless session auto-approve is on",
    )
    dangerous: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_DANGEROUS_TOOLS),
        description="Tools that need approval on every call",
    )

    def to_classification(self) -> ToolClassification:
        """Build the immutable lookup. Raises ValueError on overlapping sets."""
        return ToolClassification(
            safe=self.safe,
            approval_required=self.approval_required,
            dangerous=self.dangerous,
        )
