# backend/app/core/exceptions.py
"""
Exception hierarchy for SecureX.

Every error carries the HTTP status it maps to, a stable machine code and an
i18n message key so that the API layer can answer with a localized,
user-presentable message instead of an upstream body or a stack trace.
"""

from typing import Any, Dict, Optional

from app.core.constants import UPGRADE_URL


class SecureXError(Exception):
    """Base exception for all SecureX errors"""

    status_code: int = 500
    error_code: str = "internal_error"
    message_key: str = "error.internal"

    def __init__(
        self,
        message: Optional[str] = None,
        message_key: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        if message_key:
            self.message_key = message_key
        self.params = params or {}
        self.extra = extra or {}
        super().__init__(message or self.message_key)

    def to_detail(self, message: str) -> Dict[str, Any]:
        detail = {"error": self.error_code, "message": message}
        detail.update(self.extra)
        return detail


class InputValidationError(SecureXError):
    """Malformed URL, oversized or unsupported file, bad repository reference"""
    status_code = 400
    error_code = "invalid_input"
    message_key = "error.validation"


class AuthenticationError(SecureXError):
    status_code = 401
    error_code = "unauthorized"
    message_key = "error.unauthorized"


class AuthorizationError(SecureXError):
    status_code = 403
    error_code = "forbidden"
    message_key = "error.forbidden"


class OwnershipError(AuthorizationError):
    """Caller tried to act on a resource owned by another account"""
    error_code = "not_owner"
    message_key = "error.not_owner"


class UpgradeRequiredError(SecureXError):
    """PRO-only feature requested by a free account"""
    status_code = 402
    error_code = "upgrade_required"
    message_key = "error.upgrade_required"

    def __init__(self, message: Optional[str] = None, message_key: Optional[str] = None, **kwargs):
        super().__init__(message, message_key, **kwargs)
        self.extra.setdefault("upgrade_url", UPGRADE_URL)


class QuotaExceededError(UpgradeRequiredError):
    status_code = 429
    error_code = "quota_exceeded"
    message_key = "scan.quota_exceeded"


class NotFoundError(SecureXError):
    status_code = 404
    error_code = "not_found"
    message_key = "error.not_found"


class InvalidTransitionError(SecureXError):
    """Scan status change outside the lifecycle"""
    status_code = 409
    error_code = "invalid_transition"
    message_key = "error.invalid_transition"


class UpstreamServiceError(SecureXError):
    """Payment provider, AI endpoint, code registry or hosted backend failure"""
    status_code = 502
    error_code = "upstream_error"
    message_key = "error.upstream"

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        http_status: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.service = service
        self.http_status = http_status


class WebhookSignatureError(SecureXError):
    status_code = 400
    error_code = "invalid_signature"
    message_key = "error.invalid_signature"


class InvalidCodeError(InputValidationError):
    """Promo or plan code rejected; `reason` is the numeric validation error"""
    error_code = "invalid_code"
    message_key = "code.not_found"

    def __init__(self, reason: int, message_key: Optional[str] = None, **kwargs):
        super().__init__(f"Code rejected ({int(reason)})", message_key, **kwargs)
        self.reason = int(reason)
        self.extra.setdefault("valid", False)
        self.extra.setdefault("reason", self.reason)
