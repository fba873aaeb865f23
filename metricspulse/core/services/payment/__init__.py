from metricspulse.core.services.payment.stripe import StripeClient

__all__ = ["StripeClient"]
