"""Error taxonomy for ITN reconciliation.

Every error is scoped to a single notification. Each carries the HTTP status
the gateway should see and a short plain-text body.
"""


class ReconciliationError(Exception):
    """Base class for errors raised while reconciling a notification."""
    status_code = 500
    default_detail = "server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(ReconciliationError):
    """Signature missing or wrong, or the ITN is for another merchant."""
    status_code = 400
    default_detail = "invalid signature"


class ValidationError(ReconciliationError):
    """Missing or malformed field, or a gross amount that does not match."""
    status_code = 400
    default_detail = "invalid notification"


class NotFoundError(ReconciliationError):
    """Notification references no known intent or subscription."""
    status_code = 404
    default_detail = "unknown m_payment_id"


class ConflictAlreadyProcessed(ReconciliationError):
    """The charge was already recorded. Reported to the gateway as success."""
    status_code = 200
    default_detail = "OK"


class TransientInfrastructureError(ReconciliationError):
    """Database unavailable or similar. Nothing was committed; retry later."""
    status_code = 500
    default_detail = "server error"
