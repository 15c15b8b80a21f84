"""Tests for the year-keyed data provider and its cache."""

import asyncio
import pytest

from swisstax.engine.models import Person, TaxInput
from swisstax.io.provider import DataCache, TaxDataProvider


def _input(canton_id, city_id, year=2023):
    return TaxInput(canton_id=canton_id, city_id=city_id, year=year, persons=[Person()])


class TestDataCache:
    """Load-on-miss cache."""

    def test_loads_once(self):
        cache = DataCache()
        calls = []

        def loader():
            calls.append(1)
            return "value"

        assert cache.get_or_load("k", loader) == "value"
        assert cache.get_or_load("k", loader) == "value"
        assert len(calls) == 1
        assert "k" in cache
        assert len(cache) == 1

    def test_loader_error_not_cached(self):
        cache = DataCache()

        def failing():
            raise FileNotFoundError("missing")

        with pytest.raises(FileNotFoundError):
            cache.get_or_load("k", failing)
        assert "k" not in cache
        assert cache.get_or_load("k", lambda: 1) == 1


class TestNearestYear:
    """Fallback from the current year to the closest earlier year with data."""

    def test_current_year_preferred(self, write_year, provider_for):
        root = write_year(2023)
        write_year(2026)
        assert asyncio.run(provider_for(root, current_year=2026).get_nearest_year_with_data()) == 2026

    def test_falls_back_to_earlier_year(self, write_year, provider_for):
        root = write_year(2023)
        write_year(2020)
        assert asyncio.run(provider_for(root, current_year=2026).get_nearest_year_with_data()) == 2023

    def test_future_years_ignored(self, write_year, provider_for):
        root = write_year(2030)
        with pytest.raises(FileNotFoundError, match="No locations data found"):
            asyncio.run(provider_for(root, current_year=2026).get_nearest_year_with_data())

    def test_min_year_bound(self, write_year, provider_for):
        root = write_year(2023)
        provider = provider_for(root, current_year=2026, min_year=2024)
        with pytest.raises(FileNotFoundError):
            asyncio.run(provider.get_nearest_year_with_data())

    def test_empty_root(self, tmp_path, provider_for):
        with pytest.raises(FileNotFoundError):
            asyncio.run(provider_for(tmp_path).get_nearest_year_with_data())


class TestLocations:
    """Location lists and canton lookup."""

    def test_default_year(self, write_year, provider_for):
        root = write_year(2023)
        locations = asyncio.run(provider_for(root).get_tax_locations())
        assert [loc.city_id for loc in locations] == [261, 2829]
        assert locations[0].name == "Zürich"
        assert locations[0].canton == "ZH"

    def test_explicit_year(self, write_year, provider_for):
        root = write_year(2023)
        write_year(2024, locations={"locations": [
            {"city_id": 351, "name": "Bern", "canton_id": 4, "canton": "BE"},
        ]})
        provider = provider_for(root)
        assert [loc.name for loc in asyncio.run(provider.get_tax_locations(2023))] == ["Zürich", "Liestal"]
        assert [loc.name for loc in asyncio.run(provider.get_tax_locations(2024))] == ["Bern"]

    def test_explicit_year_without_data(self, write_year, provider_for):
        root = write_year(2023)
        with pytest.raises(FileNotFoundError, match="Tax data not found"):
            asyncio.run(provider_for(root).get_tax_locations(2019))

    def test_served_from_cache(self, write_year, provider_for):
        root = write_year(2023)
        provider = provider_for(root)
        asyncio.run(provider.get_tax_locations(2023))
        (root / "2023" / "locations.yaml").unlink()
        assert len(asyncio.run(provider.get_tax_locations(2023))) == 2
        assert ("locations", 2023) in provider.cache

    def test_canton_by_city(self, write_year, provider_for):
        root = write_year(2023)
        provider = provider_for(root)
        assert asyncio.run(provider.get_canton_id_by_city_id(261, 2023)) == 26
        assert asyncio.run(provider.get_canton_id_by_city_id(2829, 2023)) == 5

    def test_canton_by_unknown_city(self, write_year, provider_for):
        root = write_year(2023)
        with pytest.raises(ValueError, match="Location not found for 9999, 2023"):
            asyncio.run(provider_for(root).get_canton_id_by_city_id(9999, 2023))

    def test_shared_cache(self, write_year):
        root = write_year(2023)
        cache = DataCache()
        asyncio.run(TaxDataProvider(root, cache=cache).get_tax_locations(2023))
        assert ("locations", 2023) in cache


class TestFactorsAndTarifs:
    """Factor records and tariff sets."""

    def test_city_record_preferred(self, write_year, provider_for):
        root = write_year(2023)
        factors = asyncio.run(provider_for(root).get_tax_factors(_input(26, 261)))
        assert factors.income_rate_city == 125

    def test_canton_record_fallback(self, write_year, provider_for):
        root = write_year(2023)
        provider = provider_for(root)
        assert asyncio.run(provider.get_tax_factors(_input(26, 9999))).income_rate_city == 119
        assert asyncio.run(provider.get_tax_factors(_input(5, 2829))).income_rate_city == 60

    def test_missing_factors(self, write_year, provider_for):
        root = write_year(2023)
        with pytest.raises(ValueError, match="Tax factors not found"):
            asyncio.run(provider_for(root).get_tax_factors(_input(1, 4001)))

    def test_tarifs(self, write_year, provider_for):
        root = write_year(2023)
        tarifs = asyncio.run(provider_for(root).get_tarifs(26, 2023))
        assert tarifs.income.name == "flat"
        assert tarifs.income_married is None

    def test_missing_tarifs(self, write_year, provider_for):
        root = write_year(2023)
        with pytest.raises(ValueError, match="Tarifs not found for canton 1, 2023"):
            asyncio.run(provider_for(root).get_tarifs(1, 2023))
