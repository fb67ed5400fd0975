"""Pytest configuration and fixtures."""

import os

import pytest

os.environ.setdefault("LPMS_API_URL", "http://store.test")


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json body")
        return self._body


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def sample_property():
    return {
        "id": 7,
        "property_name": "ABC Apartments",
        "property_lrl": "D0064",
        "water_rate_per_unit": "27.00",
        "number_of_floors": None,
        "number_of_units": 20,
        "unit_set": [{"id": 71, "unit_number": "A1"}, {"id": 72, "unit_number": "A2"}],
    }
