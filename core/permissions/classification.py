"""Static classification of tool names into gating categories."""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from .models import ToolCategory

logger = logging.getLogger(__name__)

# Read-only tools that never need a human decision
DEFAULT_SAFE_TOOLS = frozenset(
    {"read_file", "list_files", "search_files", "create_tasks", "update_tasks"}
)

# Tools gated unless the session has auto-approve on
DEFAULT_APPROVAL_REQUIRED_TOOLS = frozenset({"create_file", "edit_file"})

# Tools gated on every call, auto-approve does not apply
DEFAULT_DANGEROUS_TOOLS = frozenset({"delete_file", "execute_command"})


class ToolClassification:
    """
    Immutable lookup from tool name to ToolCategory.

    The three sets must be disjoint. Injected into the controller and the
    model client so deployments and tests can swap the table.
    """

    def __init__(
        self,
        safe: Iterable[str] = (),
        approval_required: Iterable[str] = (),
        dangerous: Iterable[str] = (),
    ):
        sets = {
            ToolCategory.SAFE: frozenset(safe),
            ToolCategory.APPROVAL_REQUIRED: frozenset(approval_required),
            ToolCategory.DANGEROUS: frozenset(dangerous),
        }
        table: dict[str, ToolCategory] = {}
        for category, names in sets.items():
            for name in names:
                if name in table:
                    raise ValueError(
                        f"Tool '{name}' is classified as both "
                        f"{table[name].value} and {category.value}"
                    )
                table[name] = category
        self._table: Mapping[str, ToolCategory] = MappingProxyType(table)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._table

    def __repr__(self) -> str:
        return f"ToolClassification({len(self._table)} tools)"

    @property
    def table(self) -> Mapping[str, ToolCategory]:
        return self._table

    def names(self, category: ToolCategory) -> frozenset[str]:
        return frozenset(n for n, c in self._table.items() if c is category)

    def category(self, tool_name: str) -> ToolCategory:
        """
        Get the category of a tool.

        Unknown tools are treated as approval-required so that a tool missing
        from the table is never executed silently.
        """
        category = self._table.get(tool_name)
        if category is None:
            logger.warning("Unclassified tool %s, treating as approval-required", tool_name)
            return ToolCategory.APPROVAL_REQUIRED
        return category

    def is_dangerous(self, tool_name: str) -> bool:
        return self.category(tool_name) is ToolCategory.DANGEROUS

    def needs_approval(self, tool_name: str, session_auto_approve: bool = False) -> bool:
        """
        Decide whether a call to ``tool_name`` must pass the approval gate.

        Args:
            tool_name: Name of the tool being called
            session_auto_approve: Whether the session auto-approve flag is on

        Returns:
            True for dangerous tools, True for approval-required tools unless
            auto-approve is on, False for safe tools
        """
        category = self.category(tool_name)
        if category is ToolCategory.DANGEROUS:
            return True
        if category is ToolCategory.APPROVAL_REQUIRED:
            return not session_auto_approve
        return False


DEFAULT_TOOL_CLASSIFICATION = ToolClassification(
    safe=DEFAULT_SAFE_TOOLS,
    approval_required=DEFAULT_APPROVAL_REQUIRED_TOOLS,
    dangerous=DEFAULT_DANGEROUS_TOOLS,
)
