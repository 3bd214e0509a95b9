"""
Domain exceptions for the fee engine.

Fatal errors derive from PaymentEngineError and carry the HTTP status the
engine endpoint answers with. Soft lookup failures (unknown scholarship id,
unparseable date override) are not exceptions: they are logged and show up
only as degraded fields.
"""


class PaymentEngineError(Exception):
    """Base exception for all fee engine errors."""
    status_code = 400
    default_detail = 'Payment engine error.'
    retryable = False

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConfigurationError(PaymentEngineError):
    """Fee structure inputs are missing or invalid."""
    default_detail = 'Invalid fee structure configuration.'


class ValidationError(PaymentEngineError):
    """Request values are missing or out of range."""
    default_detail = 'Invalid request.'


class NotFoundError(PaymentEngineError):
    """A required record does not exist."""
    status_code = 404
    default_detail = 'Not found.'


class FeeStructureNotFoundError(ConfigurationError, NotFoundError):
    """Neither a fee structure nor a preview override is available."""
    status_code = 404
    default_detail = 'Fee structure not found.'


class PaymentRecordNotFoundError(NotFoundError):
    """Student has no payment record in the cohort."""
    default_detail = 'Payment record not found.'


class TransactionNotFoundError(NotFoundError):
    """Payment transaction does not exist."""
    default_detail = 'Transaction not found.'


class UnallocatedPaymentError(ValidationError):
    """Transaction targets neither an installment nor a semester."""
    default_detail = 'General payments are not supported; every payment must target an installment.'


class InvalidApprovalStateError(ValidationError):
    """Transaction has already been reviewed."""
    default_detail = 'Transaction is not awaiting review.'


class ConcurrencyConflictError(PaymentEngineError):
    """Transaction changed while it was being reviewed."""
    status_code = 409
    default_detail = 'Transaction was modified concurrently. Please retry.'
    retryable = True
