from __future__ import annotations

from datetime import date

import pytest

from conftest import make_submission
from quotadesk.services.analytics_service import aggregate_product_data, shipments_in_date_range


def test_aggregate_sums_pounds_cost_and_shipments(approval_engine, store):
    approval_engine.submit(make_submission(("tuna", 100), ("mahi", 20)))
    approval_engine.submit(make_submission(("tuna", 50)))
    approval_engine.submit(make_submission(("other", 30), custom_name="Cobia"))

    rows = aggregate_product_data(store.list_shipments(), store.products)
    by_id = {row.product_id: row for row in rows}

    assert rows[0].product_id == "tuna"
    assert by_id["tuna"].total_pounds == 150
    assert by_id["tuna"].shipment_count == 2
    assert by_id["tuna"].total_cost == pytest.approx(150 * 4.5)
    assert by_id["other_Cobia"].product_name == "Cobia"
    assert by_id["wahoo"].total_pounds == 0
    assert "other" not in by_id


def test_date_range_is_inclusive(approval_engine, store):
    approval_engine.submit(make_submission(("tuna", 10), arrival=date(2026, 3, 1)))
    approval_engine.submit(make_submission(("tuna", 10), arrival=date(2026, 3, 7)))
    approval_engine.submit(make_submission(("tuna", 10), arrival=date(2026, 3, 8)))

    selected = shipments_in_date_range(store.list_shipments(), date(2026, 3, 1), date(2026, 3, 7))
    assert sorted(s.estimated_arrival for s in selected) == [date(2026, 3, 1), date(2026, 3, 7)]
