"""
Billing error taxonomy.

Each error carries the machine-readable code placed in the response
envelope and the HTTP status the routers answer with.
"""


class BillingError(Exception):
    error_code = "internal_error"
    status_code = 500
    default_message = "An error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPayload(BillingError):
    error_code = "invalid_payload"
    status_code = 400
    default_message = "Invalid payload"


class Unauthorized(BillingError):
    error_code = "unauthorized"
    status_code = 401
    default_message = "User not allowed"


class Forbidden(BillingError):
    error_code = "forbidden"
    status_code = 401
    default_message = "User is not allowed to access the resource"


class NotFound(BillingError):
    error_code = "not_found"
    status_code = 404
    default_message = "Data not found"


class InvalidState(BillingError):
    error_code = "invalid_state"
    status_code = 400
    default_message = "Operation not allowed in the current state"


class AlreadySubscribed(BillingError):
    error_code = "already_subscribed"
    status_code = 400
    default_message = "You already have an active subscription."


class MisconfiguredPricing(BillingError):
    error_code = "misconfigured_pricing"
    status_code = 500
    default_message = "Missing Stripe price IDs"


class ProviderError(BillingError):
    error_code = "provider_error"
    status_code = 502
    default_message = "Payment provider request failed"


class MultipleActiveSubscriptions(BillingError):
    error_code = "multiple_active_subscriptions"
    status_code = 500
    default_message = "More than one active subscription found for user"


class NoBillingAccount(BillingError):
    error_code = "no_billing_account"
    status_code = 400
    default_message = "No active subscription or Stripe customer ID found."


class UnknownProviderStatus(BillingError):
    error_code = "unknown_provider_status"
    status_code = 500
    default_message = "Unknown provider subscription status"
