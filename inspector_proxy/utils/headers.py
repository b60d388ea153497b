"""Allow-list filter for headers forwarded to upstream event streams."""

from typing import Any, Dict, Mapping

# Lower-case header names copied from the browser request onto upstream requests
SSE_HEADERS_PASSTHROUGH = ("authorization",)


def passthrough_headers(headers: Mapping[str, Any]) -> Dict[str, str]:
    """
    Select the allow-listed headers from an inbound request.

    Lookup is case-insensitive. When a header was sent more than once the last
    value wins. Headers outside the allow-list are dropped.

    Args:
        headers: Inbound headers (Starlette ``Headers`` or a plain mapping)

    Returns:
        Headers to attach to every outbound upstream request
    """
    selected: Dict[str, str] = {}
    if hasattr(headers, "getlist"):
        for key in SSE_HEADERS_PASSTHROUGH:
            values = headers.getlist(key)
            if values:
                selected[key] = values[-1]
        return selected

    lowered = {str(key).lower(): value for key, value in headers.items()}
    for key in SSE_HEADERS_PASSTHROUGH:
        value = lowered.get(key)
        if isinstance(value, (list, tuple)):
            value = value[-1] if value else None
        if value is not None:
            selected[key] = str(value)
    return selected
