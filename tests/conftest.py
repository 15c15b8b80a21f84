"""Common test fixtures and configuration for swisstax tests."""

import copy
import pytest
from pathlib import Path
import yaml

from swisstax.engine.models import (
    ChurchTaxBases, Confession, Person, TaxFactors, TaxInput, chf,
)
from swisstax.io.provider import TaxDataProvider

# Shipped data files
CONFIG_ROOT = Path(__file__).resolve().parents[1] / "swisstax" / "configs"


@pytest.fixture
def config_root():
    """Path to the shipped data files."""
    return CONFIG_ROOT


@pytest.fixture
def year_2025():
    """Tax year for testing."""
    return 2025


@pytest.fixture
def factors():
    """Rate factors with distinct church rates per confession."""
    return TaxFactors(
        income_rate_canton=100,
        income_rate_city=120,
        income_rate_christ=10,
        income_rate_roman=12,
        income_rate_protestant=8,
        wealth_rate_canton=100,
        wealth_rate_city=120,
        wealth_rate_christ=10,
        wealth_rate_roman=12,
        wealth_rate_protestant=8,
    )


@pytest.fixture
def bases():
    """Church tax bases of a mid-income household."""
    return ChurchTaxBases(
        taxes_income_base=chf("5000"),
        taxes_income_canton=chf("5000"),
        taxes_income_city=chf("6000"),
        taxes_wealth_base=chf("300"),
        taxes_wealth_canton=chf("300"),
        taxes_wealth_city=chf("360"),
        taxable_income_canton=chf("80000"),
        taxable_wealth_canton=chf("200000"),
    )


@pytest.fixture
def tax_input_for():
    """Build a TaxInput for a canton and one confession per person."""
    def _make(canton_id: int, *confessions: str, year: int = 2025, city_id: int = 1) -> TaxInput:
        persons = [Person(confession=Confession(c)) for c in (confessions or ("none",))]
        return TaxInput(canton_id=canton_id, city_id=city_id, year=year, persons=persons)
    return _make


SAMPLE_LOCATIONS = {
    "locations": [
        {"city_id": 261, "name": "Zürich", "canton_id": 26, "canton": "ZH"},
        {"city_id": 2829, "name": "Liestal", "canton_id": 5, "canton": "BL"},
    ]
}

SAMPLE_FACTORS = {
    "cantons": {
        26: {
            "income_rate_canton": 98, "income_rate_city": 119, "income_rate_roman": 10,
            "wealth_rate_canton": 98, "wealth_rate_city": 119, "wealth_rate_roman": 10,
        },
        5: {
            "income_rate_canton": 100, "income_rate_city": 60,
            "wealth_rate_canton": 100, "wealth_rate_city": 60,
        },
    },
    "cities": {
        261: {
            "income_rate_canton": 98, "income_rate_city": 125,
            "wealth_rate_canton": 98, "wealth_rate_city": 125,
        },
    },
}

_FLAT_TARIF = {
    "name": "flat",
    "table_type": "bracket",
    "table": [{"amount": 0, "percent": 0}, {"amount": 10000, "percent": 5}],
}

SAMPLE_TARIFS = {
    "cantons": {
        26: {"income": _FLAT_TARIF, "wealth": _FLAT_TARIF},
        5: {"income": _FLAT_TARIF, "wealth": _FLAT_TARIF},
    }
}


@pytest.fixture
def sample_locations():
    return copy.deepcopy(SAMPLE_LOCATIONS)


@pytest.fixture
def sample_factors():
    return copy.deepcopy(SAMPLE_FACTORS)


@pytest.fixture
def sample_tarifs():
    return copy.deepcopy(SAMPLE_TARIFS)


@pytest.fixture
def write_year(tmp_path):
    """Write a year's YAML data files under tmp_path; returns the data root."""
    def _write(year: int, locations=SAMPLE_LOCATIONS, factors=SAMPLE_FACTORS, tarifs=SAMPLE_TARIFS) -> Path:
        year_dir = tmp_path / str(year)
        year_dir.mkdir(parents=True, exist_ok=True)
        for name, data in (("locations.yaml", locations), ("factors.yaml", factors), ("tarifs.yaml", tarifs)):
            if data is not None:
                with (year_dir / name).open("w", encoding="utf-8") as f:
                    yaml.safe_dump(data, f, allow_unicode=True)
        return tmp_path
    return _write


@pytest.fixture
def provider_for():
    """Provider over a data root with a fixed current year."""
    def _make(root: Path, current_year: int = 2026, min_year: int = 2000) -> TaxDataProvider:
        return TaxDataProvider(root, current_year=lambda: current_year, min_year=min_year)
    return _make
