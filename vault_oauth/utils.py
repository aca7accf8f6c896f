"""Utility functions for vault OAuth"""

import base64
import binascii
import json
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlsplit


def clean_vault_url(vault_url: str) -> str:
    """Trim whitespace and the trailing slash from a user-entered vault URL"""
    return vault_url.strip().rstrip("/")


def join_vault_url(vault_url: str, path: str) -> str:
    """Append an absolute path to a vault URL"""
    return f"{clean_vault_url(vault_url)}/{path.lstrip('/')}"


def query_params(url: str) -> Dict[str, str]:
    """Parse the query string of a URL, keeping the first value of each key

    Works for custom schemes such as pulse://auth/callback?code=...
    """
    params = parse_qs(urlsplit(url).query, keep_blank_values=False)
    return {key: values[0] for key, values in params.items() if values}


def decode_token_payload(token: str) -> Optional[Dict[str, Any]]:
    """Decode a token's payload without verifying it

    Dotted tokens (JWT style) use their middle segment; anything else is
    treated as a bare base64url encoded JSON object. The result is for local
    display and defaulting only, never for trust decisions.

    Args:
        token: Token string

    Returns:
        Dictionary of claims, or None if the token cannot be decoded
    """
    if not token:
        return None

    parts = token.split(".")
    if len(parts) == 3:
        segment = parts[1]
    elif len(parts) == 1:
        segment = token
    else:
        return None

    try:
        # Add padding if needed
        padded = segment + "=" * (-len(segment) % 4)
        data = base64.urlsafe_b64decode(padded.encode("ascii"))
        claims = json.loads(data.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None

    return claims if isinstance(claims, dict) else None
