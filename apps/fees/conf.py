"""Fee engine settings with defaults, overridable through settings.PAYMENT_ENGINE."""

from django.conf import settings


DEFAULTS = {
    'MAX_PARTIAL_PAYMENTS': 2,
    'PENDING_DAYS_THRESHOLD': 10,
    'INSTALLMENT_DISTRIBUTION': 'apps.fees.services.breakdown_calculation.FrontLoadedDistribution',
    'APPLY_ONE_SHOT_DISCOUNT_TO_INSTALLMENTS': False,
}


def engine_setting(name):
    """Return a PAYMENT_ENGINE setting, falling back to its default."""
    overrides = getattr(settings, 'PAYMENT_ENGINE', {}) or {}
    return overrides.get(name, DEFAULTS[name])
