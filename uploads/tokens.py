"""Upload token inspection: per-draft tokens versus destination tokens

A token carrying a draftId claim is bound to exactly one video; a token
without one is a long-lived destination token and the client names the
draft itself when finalizing. Claims are peeked without verification and
only shape the request; the vault decides whether the token is valid.
"""

import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from vault_oauth import decode_token_payload

logger = logging.getLogger(__name__)


class UploadTokenKind(str, Enum):
    PER_DRAFT = "per_draft"
    DESTINATION = "destination"


@dataclass
class TokenClaims:
    """The upload token claims the client looks at

    Attributes:
        draft_id: Draft the token is scoped to, if any
        expires_at: Expiry in unix seconds, if present and numeric
    """
    draft_id: Optional[str] = None
    expires_at: Optional[float] = None


def peek_token_claims(token: str) -> TokenClaims:
    """Read draftId and expiresAt from a token without verifying it

    Malformed tokens and missing or mistyped claims yield empty fields.
    """
    payload = decode_token_payload(token) or {}

    draft_id = payload.get("draftId")
    if not isinstance(draft_id, str) or not draft_id:
        draft_id = None

    expires_at = payload.get("expiresAt")
    # bool is an int subclass but never a timestamp
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        expires_at = None

    return TokenClaims(draft_id=draft_id, expires_at=expires_at)


def format_timestamp(dt: datetime.datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2030-01-01T00:00:00.000Z"""
    return (
        dt.astimezone(datetime.timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def token_expiry_iso(token: str) -> Optional[str]:
    """Expiry claim of a token as an ISO-8601 string, or None"""
    expires_at = peek_token_claims(token).expires_at
    if expires_at is None:
        return None
    try:
        expires_dt = datetime.datetime.fromtimestamp(expires_at, datetime.timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug("Token expiry claim out of range, ignoring")
        return None
    return format_timestamp(expires_dt)


def classify_upload_token(token: str) -> UploadTokenKind:
    if peek_token_claims(token).draft_id:
        return UploadTokenKind.PER_DRAFT
    return UploadTokenKind.DESTINATION


def build_finalize_body(
    token: str,
    draft_id: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """Build the finalize request body for an upload token

    Per-draft tokens already name their draft, so no id is sent; destination
    tokens need the client to name it.

    Args:
        token: Upload token the request will be authorized with
        draft_id: Draft/video id chosen by the client
        **fields: Other body fields (title, duration...)

    Raises:
        ValueError: Missing id for a destination token, or an id that
            contradicts a per-draft token
    """
    body = dict(fields)
    claims = peek_token_claims(token)

    if claims.draft_id:
        if draft_id and draft_id != claims.draft_id:
            raise ValueError(
                f"Token is scoped to draft {claims.draft_id}, refusing to finalize {draft_id}"
            )
        return body

    if not draft_id:
        raise ValueError("Destination tokens require a draft id in the finalize request")
    body["draftId"] = draft_id
    return body
