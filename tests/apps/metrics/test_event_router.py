"""
Tests for event routing and typed decoding.
"""

import pytest

from metricspulse.apps.metrics.schemas.events import (
    CustomerEvent,
    EventEnvelope,
    InvoiceEvent,
    PriceEvent,
    SubscriptionEvent,
)
from metricspulse.apps.metrics.services.event_router import EVENT_ROUTES, decode, route
from metricspulse.core.enums import EventCategory
from metricspulse.core.exceptions.types import ValidationException


class TestRoute:

    @pytest.mark.parametrize(
        "event_type, category, recalculates",
        [
            ("customer.subscription.created", EventCategory.SUBSCRIPTION, True),
            ("customer.subscription.deleted", EventCategory.SUBSCRIPTION, True),
            ("invoice.payment_failed", EventCategory.INVOICE, True),
            ("invoice.paid", EventCategory.INVOICE, True),
            ("customer.created", EventCategory.CUSTOMER, False),
            ("price.updated", EventCategory.PRICE, False),
        ],
    )
    def test_known_types(self, event_type, category, recalculates):
        event_route = route(event_type)
        assert event_route is not None
        assert event_route.category == category
        assert event_route.recalculates is recalculates

    @pytest.mark.parametrize("event_type", ["charge.succeeded", "payout.paid", ""])
    def test_unknown_types(self, event_type):
        assert route(event_type) is None

    def test_routing_table_size(self):
        assert len(EVENT_ROUTES) == 15


class TestDecode:

    def _envelope(self, event_type: str, obj: dict | None, account="acct_1"):
        return EventEnvelope.model_validate(
            {"id": "evt_1", "type": event_type, "account": account, "data": {"object": obj}}
        )

    def test_subscription_event(self, make_subscription):
        event_type = "customer.subscription.updated"
        event = decode(self._envelope(event_type, make_subscription()), route(event_type))

        assert isinstance(event, SubscriptionEvent)
        assert event.account == "acct_1"
        assert event.object.customer == "cus_1"
        assert event.object.first_price_id == "price_sub_1"
        assert event.object.current_period_end is not None

    def test_invoice_event(self):
        event = decode(
            self._envelope("invoice.paid", {"id": "in_1", "customer": "cus_1"}),
            route("invoice.paid"),
        )
        assert isinstance(event, InvoiceEvent)

    def test_customer_and_price_events(self):
        customer = decode(
            self._envelope("customer.created", {"id": "cus_1"}), route("customer.created")
        )
        price = decode(
            self._envelope("price.created", {"id": "price_1"}), route("price.created")
        )
        assert isinstance(customer, CustomerEvent)
        assert isinstance(price, PriceEvent)

    def test_missing_object_fields(self):
        with pytest.raises(ValidationException) as exc_info:
            decode(
                self._envelope("invoice.paid", {"id": "in_1"}), route("invoice.paid")
            )
        assert exc_info.value.details is not None
        assert exc_info.value.details["errors"]

    def test_missing_object(self):
        with pytest.raises(ValidationException):
            decode(self._envelope("price.created", None), route("price.created"))
