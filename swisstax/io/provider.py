"""Year-keyed tax data (locations, rate factors, tariffs) behind an explicit cache."""

from __future__ import annotations
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Hashable, List, Optional, TypeVar

from ..engine.models import (
    FactorsConfig, LocationsConfig, TarifsConfig, TariffSet, TaxFactors, TaxInput, TaxLocation,
)
from .loader import has_locations, load_factors, load_locations, load_tarifs

logger = logging.getLogger(__name__)

MIN_YEAR = 2000

T = TypeVar("T")


class DataCache:
    """Load-on-miss cache. Entries are immutable once inserted and never evicted."""

    def __init__(self):
        self._entries: Dict[Hashable, object] = {}

    def get_or_load(self, key: Hashable, loader: Callable[[], T]) -> T:
        if key in self._entries:
            return self._entries[key]
        logger.debug("Loading %s", key)
        value = loader()
        # first insert wins if two loads raced
        return self._entries.setdefault(key, value)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TaxDataProvider:
    """Serves locations, factors and tariffs for a data root of per-year YAML files."""

    def __init__(
        self,
        root: Path,
        cache: Optional[DataCache] = None,
        current_year: Optional[Callable[[], int]] = None,
        min_year: int = MIN_YEAR,
    ):
        self.root = Path(root)
        self.cache = cache if cache is not None else DataCache()
        self._current_year = current_year or (lambda: date.today().year)
        self.min_year = min_year

    def _locations(self, year: int) -> LocationsConfig:
        return self.cache.get_or_load(("locations", year), lambda: load_locations(self.root, year))

    def _locations_by_city(self, year: int) -> Dict[int, TaxLocation]:
        return self.cache.get_or_load(
            ("locations_by_city", year),
            lambda: {loc.city_id: loc for loc in self._locations(year).locations},
        )

    def _factors(self, year: int) -> FactorsConfig:
        return self.cache.get_or_load(("factors", year), lambda: load_factors(self.root, year))

    def _tarifs(self, year: int) -> TarifsConfig:
        return self.cache.get_or_load(("tarifs", year), lambda: load_tarifs(self.root, year))

    async def get_nearest_year_with_data(self) -> int:
        """Current year, then each earlier year down to min_year, until locations exist."""
        current = self._current_year()
        for year in range(current, self.min_year - 1, -1):
            if has_locations(self.root, year):
                return year
        raise FileNotFoundError(f"No locations data found (checked {self.min_year}..{current})")

    async def get_tax_locations(self, year: Optional[int] = None) -> List[TaxLocation]:
        resolved = year if year is not None else await self.get_nearest_year_with_data()
        return list(self._locations(resolved).locations)

    async def get_canton_id_by_city_id(self, city_id: int, year: int) -> int:
        location = self._locations_by_city(year).get(city_id)
        if location is None:
            raise ValueError(f"Location not found for {city_id}, {year}")
        return location.canton_id

    async def get_tax_factors(self, tax_input: TaxInput) -> TaxFactors:
        """Municipality record if the data has one, else the canton record."""
        factors = self._factors(tax_input.year)
        found = factors.cities.get(tax_input.city_id) or factors.cantons.get(tax_input.canton_id)
        if found is None:
            raise ValueError(
                f"Tax factors not found for canton {tax_input.canton_id}, "
                f"city {tax_input.city_id}, {tax_input.year}"
            )
        return found

    async def get_tarifs(self, canton_id: int, year: int) -> TariffSet:
        tarifs = self._tarifs(year).cantons.get(canton_id)
        if tarifs is None:
            raise ValueError(f"Tarifs not found for canton {canton_id}, {year}")
        return tarifs
