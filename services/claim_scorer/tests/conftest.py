"""Shared fixtures for claim scorer tests."""

import copy
import json
from pathlib import Path

import pytest

from bundle import parse_bundle

EXAMPLE_BUNDLE_PATH = Path(__file__).resolve().parent.parent / "preprocessing_bundle.example.json"


@pytest.fixture
def example_bundle_path():
    return EXAMPLE_BUNDLE_PATH


@pytest.fixture
def bundle_payload():
    """Decoded example bundle document (fresh copy per test)."""
    with EXAMPLE_BUNDLE_PATH.open(encoding="utf-8") as f:
        return copy.deepcopy(json.load(f))


@pytest.fixture
def bundle(bundle_payload):
    return parse_bundle(bundle_payload, source="test")


@pytest.fixture
def bundle_file(tmp_path, bundle_payload):
    path = tmp_path / "preprocessing_bundle.json"
    path.write_text(json.dumps(bundle_payload), encoding="utf-8")
    return path


@pytest.fixture
def ui_claim():
    """Claim as sent by the web form, using UI field names."""
    return {
        "provider_id": "PRV51003",
        "claim_amount": "$3,000",
        "referring_physician": "PHY311000",
        "diagnosis_code": "Diag: e11.9 present",
        "procedure_code": "cpt 99213 billed",
        "gender": 2,
        "ChronicCond_Diabetes": 1,
        "patient_age": "80",
        "service_frequency": 4,
    }
