"""NCP code allocation and storage-level uniqueness."""
from datetime import date

import pytest

from ncp_portal.core.exceptions import DuplicateKeyError, ValidationError
from ncp_portal.services.ncp_code import NCPCodeGenerator, code_prefix, next_code

from conftest import FIXED_NOW


def _row(code, **overrides):
    row = {
        "ncp_code": code,
        "status": "pending",
        "sku_code": "SKU-1",
        "machine_code": "M-1",
        "incident_date": date(2024, 3, 1),
        "incident_time": "07:00",
        "hold_quantity": 1,
        "hold_quantity_uom": "pcs",
        "problem_description": "x",
        "submitted_by": "reporter",
        "submitted_at": FIXED_NOW,
        "qa_leader": "qa_alice",
    }
    row.update(overrides)
    return row


def test_prefix_is_two_digit_year_and_month():
    assert code_prefix(date(2024, 3, 15)) == "2403"
    assert code_prefix(date(2031, 12, 1)) == "3112"


def test_next_code():
    assert next_code("2403", None) == "2403-0001"
    assert next_code("2403", "2403-0009") == "2403-0010"
    assert next_code("2403", "2403-0999") == "2403-1000"


def test_sequence_exhaustion_is_reported():
    with pytest.raises(ValidationError):
        next_code("2403", "2403-9999")


async def test_generator_counts_within_month(gateway):
    generator = NCPCodeGenerator(gateway)
    assert await generator.generate(date(2024, 3, 15)) == "2403-0001"

    await gateway.insert("ncp_reports", _row("2403-0001"))
    await gateway.insert("ncp_reports", _row("2403-0002"))
    await gateway.insert("ncp_reports", _row("2402-0007"))

    assert await generator.generate(date(2024, 3, 20)) == "2403-0003"
    assert await generator.generate(date(2024, 2, 1)) == "2402-0008"
    assert await generator.generate(date(2024, 4, 1)) == "2404-0001"


async def test_duplicate_code_is_refused_by_storage(gateway):
    await gateway.insert("ncp_reports", _row("2403-0001"))
    with pytest.raises(DuplicateKeyError):
        await gateway.insert("ncp_reports", _row("2403-0001"))
