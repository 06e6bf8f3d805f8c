"""ID generation utility."""

import secrets


def gen_id(prefix: str) -> str:
    """Generate prefixed identifiers: msg_xxx, tool_xxx, apr_xxx"""
    return f"{prefix}{secrets.token_urlsafe(12)}"
