class BillingError(Exception):
    """Base class for billing failures the routes map to HTTP statuses."""
    status_code = 500


class StripeNotConfigured(BillingError):
    status_code = 500

    def __init__(self, message: str = "Stripe is not configured"):
        super().__init__(message)


class PlanResolutionError(BillingError):
    status_code = 400


class NoActiveSubscription(BillingError):
    status_code = 404
