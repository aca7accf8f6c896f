"""Upload destinations and upload token handling"""

from .destinations import UploadDestination, UploadDestinationStore, normalize_origin
from .tokens import (
    TokenClaims,
    UploadTokenKind,
    build_finalize_body,
    classify_upload_token,
    peek_token_claims,
    token_expiry_iso,
)

__all__ = [
    "UploadDestination",
    "UploadDestinationStore",
    "normalize_origin",
    "TokenClaims",
    "UploadTokenKind",
    "build_finalize_body",
    "classify_upload_token",
    "peek_token_claims",
    "token_expiry_iso",
]
