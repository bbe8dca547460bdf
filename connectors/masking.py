"""
Connectors - Secure Logging Utilities.

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw secrets, signing secrets or verification tokens
2. Mask sensitive headers (Authorization, X-Webhook-Signature, ...)
3. Mask credentials passed in query strings
4. Secret references are masked too; they reveal vault layout

============================================================
"""

import re
from typing import Any, Dict, Mapping, Optional


# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "api-key",
    "x-webhook-signature",
}

# Parameter / field names that should be masked
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "secret",
    "client_secret",
    "password",
    "signature",
    "token",
    "access_token",
    "refresh_token",
    "signing_secret",
    "verification_token",
    "authentication_secret_ref",
}

_URL_PARAM_PATTERNS = [
    re.compile(f"({param}=)([^&]+)", re.IGNORECASE) for param in sorted(SENSITIVE_PARAMS)
]


def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy of headers with sensitive values masked."""
    if not headers:
        return {}
    return {
        key: mask_value(str(value)) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_fields(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of a flat or nested dict with sensitive keys masked."""
    if not data:
        return {}
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, Mapping):
            masked[key] = mask_fields(value)
        else:
            masked[key] = value
    return masked


def mask_url(url: Optional[str]) -> Optional[str]:
    """Mask credentials carried in a URL query string."""
    if not url:
        return url
    for pattern in _URL_PARAM_PATTERNS:
        url = pattern.sub(lambda m: f"{m.group(1)}***", url)
    return url
