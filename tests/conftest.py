from datetime import datetime

import pytest

from billing_core.normalizer import normalize_bill


FIXED_NOW = datetime(2025, 8, 14, 9, 30, 0)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def utility_bills():
    """Three electricity bills for two accounts plus one water bill, with trend history."""
    return [
        {
            "util_id": 11,
            "ubill_no": "INV-1",
            "ubill_date": "2025-07-05",
            "ubill_gtotal": "1,200.50",
            "ubill_stat": "invoiced",
            "account": {
                "account": "ACC-100",
                "service": "Electricity",
                "costcenter": {"name": "CC-North"},
                "location": {"name": "Kuching"},
                "beneficiary": {"beneficiary": {"name": "TNB", "filing": "TNB/2025"}},
            },
            "previous_5_bills": [
                {"month": "May-2025", "amount": "1100.00", "trending": "+50.00", "ubill_no": "INV-0"},
                {"month": "Jun-2025", "amount": "1150.50", "trending": "+50.50"},
            ],
        },
        {
            "util_id": 12,
            "ubill_no": "INV-2",
            "ubill_date": "2025-07-09",
            "ubill_gtotal": "80.00",
            "ubill_stat": "0",
            "account": {
                "account": "ACC-200",
                "service": "Electricity",
                "costcenter": {"name": "CC-South"},
                "beneficiary": {"name": "TNB"},
            },
        },
        {
            "util_id": 13,
            "ubill_no": "INV-3",
            "ubill_date": "2025-06-09",
            "ubill_gtotal": "70.00",
            "ubill_stat": "1",
            "account": {
                "account": "ACC-200",
                "service": "Electricity",
                "costcenter": {"name": "CC-South"},
                "beneficiary": {"name": "TNB"},
            },
        },
        {
            "util_id": 14,
            "ubill_no": "W-9",
            "ubill_date": "2025-07-11",
            "ubill_gtotal": "45.10",
            "ubill_stat": "",
            "account": {
                "account": "W-300",
                "service": "Water",
                "costcenter": {"name": "CC-North"},
                "beneficiary": {"name": "Air Kelantan"},
            },
        },
    ]


@pytest.fixture
def records(utility_bills):
    return [normalize_bill(b) for b in utility_bills]
