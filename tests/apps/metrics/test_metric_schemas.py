"""
Tests for metrics response schemas.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from metricspulse.apps.metrics.schemas.metrics import MetricSnapshotResponse
from metricspulse.core.enums import MetricName


def stored_snapshot(metric_name: MetricName, value: str) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        workspace_id=uuid4(),
        metric_name=metric_name,
        value=Decimal(value),
        recorded_at=datetime(2026, 3, 1, 2, 0, tzinfo=timezone.utc),
    )


class TestMetricSnapshotResponse:

    @pytest.mark.parametrize(
        "metric_name, stored, shown",
        [
            (MetricName.MRR, "20.0000", "20.00"),
            (MetricName.LTV, "200.0000", "200.00"),
            (MetricName.CHURN_RATE, "0.1000", "0.1000"),
            (MetricName.ACTIVE_CUSTOMERS, "4.0000", "4"),
        ],
    )
    def test_value_uses_metric_precision(self, metric_name, stored, shown):
        response = MetricSnapshotResponse.model_validate(
            stored_snapshot(metric_name, stored)
        )

        assert str(response.value) == shown

    def test_value_serializes_as_json_number(self):
        response = MetricSnapshotResponse.model_validate(
            stored_snapshot(MetricName.MRR, "20.0000")
        )

        assert response.model_dump(mode="json")["value"] == 20.0
