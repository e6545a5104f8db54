"""Custom exceptions for the QuoteDesk application."""


class QuoteDeskError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(QuoteDeskError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(QuoteDeskError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthorizedError(QuoteDeskError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", payload=None):
        super().__init__(message, 403, payload)


class ValidationError(BusinessLogicError):
    """Raised when numeric or structural input is malformed."""
    def __init__(self, field, message):
        super().__init__(f"{field}: {message}", status_code=400, payload={'field': field})
        self.field = field


class InvalidTransitionError(BusinessLogicError):
    """Raised when a status change is not a single edge of the workflow graph."""
    def __init__(self, entity_type, from_state, to_state, message=None):
        from_label = getattr(from_state, 'value', from_state)
        to_label = getattr(to_state, 'value', to_state)
        message = message or f"Illegal {entity_type} transition: {from_label} -> {to_label}"
        super().__init__(message, status_code=409, payload={
            'entity_type': entity_type,
            'from_state': from_label,
            'to_state': to_label,
        })
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state


class ConversionError(BusinessLogicError):
    """Raised when a quote cannot be turned into an invoice."""
    def __init__(self, quote_id, message, current_status=None):
        payload = {'quote_id': quote_id}
        if current_status is not None:
            payload['current_status'] = getattr(current_status, 'value', current_status)
        super().__init__(message, status_code=409, payload=payload)
        self.quote_id = quote_id


class AuditLogImmutableError(QuoteDeskError):
    """Raised when code attempts to edit or delete an audit entry."""
    def __init__(self, message="Audit log entries are append-only"):
        super().__init__(message, 500)
