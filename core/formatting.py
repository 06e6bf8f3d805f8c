"""Human-readable summaries of tool call parameters."""

import json
from typing import Any

# Parameters worth showing for each tool, in display order
KEY_PARAMETERS: dict[str, tuple[str, ...]] = {
    "read_file": ("file_path",),
    "create_file": ("file_path",),
    "edit_file": ("file_path",),
    "delete_file": ("file_path",),
    "list_files": ("directory",),
    "search_files": ("pattern",),
    "execute_command": ("command",),
    "create_tasks": (),
    "update_tasks": (),
}

MAX_VALUE_LENGTH = 50
MAX_LIST_ITEMS = 3


def _format_value(value: Any) -> str:
    if isinstance(value, list) and len(value) > MAX_LIST_ITEMS:
        text = f"[{len(value)} items]"
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, default=str)
    if len(text) > MAX_VALUE_LENGTH:
        text = text[: MAX_VALUE_LENGTH - 3] + "..."
    return f'"{text}"' if isinstance(value, str) else text


def format_tool_params(
    tool_name: str,
    tool_args: dict[str, Any],
    separator: str = "=",
    include_prefix: bool = True,
) -> str:
    """
    Summarize the key parameters of a tool call.

    Args:
        tool_name: Tool being called
        tool_args: Its arguments
        separator: Placed between parameter name and value
        include_prefix: Prepend "Parameters: "

    Returns:
        e.g. 'Parameters: file_path="app.py"'. A known tool called without
        any of its key parameters yields 'Arguments: {...}'; tools without
        key parameters (and unknown tools) yield an empty string.
    """
    keys = KEY_PARAMETERS.get(tool_name, ())
    if not keys:
        return ""

    parts = [f"{key}{separator}{_format_value(tool_args[key])}" for key in keys if key in tool_args]
    if not parts:
        return f"Arguments: {json.dumps(tool_args, default=str)}"

    body = ", ".join(parts)
    return f"Parameters: {body}" if include_prefix else body
