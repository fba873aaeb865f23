from metricspulse.core.services.payment.stripe.main import StripeClient
from metricspulse.core.services.payment.stripe.signature import (
    SIGNATURE_HEADER,
    verify_webhook_request,
)

__all__ = ["SIGNATURE_HEADER", "StripeClient", "verify_webhook_request"]
