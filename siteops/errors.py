"""
Pipeline error taxonomy.

Each error carries the HTTP status it maps to; the Flask error handler in
create_app() turns any SiteOpsError into ``{"error": ..., "details"?: ...}``.
Suppression is deliberately absent here: a suppressed address is a normal
result (``success: False``), not an exception.
"""


class SiteOpsError(Exception):
    """Base class for all pipeline errors."""
    http_status = 500

    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self):
        body = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        return body


class ConfigurationError(SiteOpsError):
    """A required API key or secret is missing. Fatal, never retried."""
    http_status = 500


class ValidationError(SiteOpsError):
    """Malformed input: bad URL, missing fields."""
    http_status = 400


class NotFoundError(SiteOpsError):
    """Unknown lead, audit, draft, site or incident."""
    http_status = 404


class Unauthorized(SiteOpsError):
    """Caller failed a shared-secret check."""
    http_status = 401


class AuditMissing(NotFoundError):
    """Draft requested for a lead that has never been audited."""

    def __init__(self, lead_id):
        self.lead_id = lead_id
        super().__init__('No audit found for this lead. Run audit first.')


class AlreadySent(SiteOpsError):
    """Draft has already been delivered."""
    http_status = 400

    def __init__(self, email_draft_id):
        self.email_draft_id = email_draft_id
        super().__init__('Email already sent')


class RateLimitExceeded(SiteOpsError):
    """Audit rate-limit gate refused the request."""
    http_status = 429

    def __init__(self, reason):
        self.reason = reason
        super().__init__('Rate limit exceeded')

    def to_dict(self):
        return {'error': self.message, 'reason': self.reason}


class UpstreamError(SiteOpsError):
    """A third-party provider answered with an error; keeps its status and payload."""

    def __init__(self, message, status_code=502, details=None):
        super().__init__(message, details=details)
        self.http_status = status_code if status_code and status_code >= 400 else 502


class GenerationFailed(SiteOpsError):
    """LLM call failed or returned an unusable draft."""
    http_status = 500
