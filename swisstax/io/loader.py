from pathlib import Path
import yaml
from ..engine.models import (
    FactorsConfig, LocationsConfig, TableType, TarifsConfig, TaxFactors, TaxTarif,
)

LOCATIONS_FILE = "locations.yaml"
FACTORS_FILE = "factors.yaml"
TARIFS_FILE = "tarifs.yaml"

# per-year data shipped with the package
CONFIG_ROOT = Path(__file__).resolve().parents[1] / "configs"


def load_yaml(path: Path):
    """Load YAML file safely."""
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _year_file(root: Path, year: int, name: str) -> Path:
    path = root / str(year) / name
    if not path.exists():
        raise FileNotFoundError(f"Tax data not found: {path}")
    return path


def has_locations(root: Path, year: int) -> bool:
    return (root / str(year) / LOCATIONS_FILE).exists()


def load_locations(root: Path, year: int) -> LocationsConfig:
    """Load the list of municipalities for a year."""
    config = LocationsConfig(**load_yaml(_year_file(root, year, LOCATIONS_FILE)))
    _validate_locations(config, year)
    return config


def load_factors(root: Path, year: int) -> FactorsConfig:
    """Load cantonal and municipal rate factors for a year."""
    config = FactorsConfig(**load_yaml(_year_file(root, year, FACTORS_FILE)))
    for canton_id, factors in config.cantons.items():
        _validate_factors(factors, f"canton {canton_id}")
    for city_id, factors in config.cities.items():
        _validate_factors(factors, f"city {city_id}")
    return config


def load_tarifs(root: Path, year: int) -> TarifsConfig:
    """Load income and wealth tariffs per canton for a year."""
    config = TarifsConfig(**load_yaml(_year_file(root, year, TARIFS_FILE)))
    for canton_id, tarifs in config.cantons.items():
        for tarif in (tarifs.income, tarifs.income_married, tarifs.wealth):
            if tarif is not None:
                _validate_tarif(tarif, canton_id)
    return config


def validate_year(root: Path, year: int) -> dict:
    """Load all data files of a year and check they fit together."""
    locations = load_locations(root, year)
    factors = load_factors(root, year)
    tarifs = load_tarifs(root, year)
    for location in locations.locations:
        if location.canton_id not in factors.cantons and location.city_id not in factors.cities:
            raise ValueError(f"No factors for {location.name} ({location.city_id}) in {year}")
        if location.canton_id not in tarifs.cantons:
            raise ValueError(f"No tarifs for canton {location.canton_id} ({location.name}) in {year}")
    return {
        "locations": len(locations.locations),
        "cantons_with_factors": len(factors.cantons),
        "cities_with_factors": len(factors.cities),
        "cantons_with_tarifs": len(tarifs.cantons),
    }


def _validate_locations(config: LocationsConfig, year: int):
    seen = set()
    for location in config.locations:
        if location.city_id in seen:
            raise ValueError(f"Duplicate city id {location.city_id} in {year} locations")
        seen.add(location.city_id)
        if not 1 <= location.canton_id <= 26:
            raise ValueError(f"Location {location.name}: canton id {location.canton_id} out of range")


def _validate_factors(factors: TaxFactors, label: str):
    for name, rate in factors.model_dump().items():
        if rate < 0:
            raise ValueError(f"Factors for {label}: {name} must be >= 0")


def _validate_tarif(tarif: TaxTarif, canton_id: int):
    """Validate one tariff table."""
    last_amount = None
    for idx, row in enumerate(tarif.table):
        if row.amount < 0:
            raise ValueError(f"Canton {canton_id} tarif {tarif.name} row {idx}: amount must be >= 0")
        if last_amount is not None and row.amount <= last_amount:
            raise ValueError(f"Canton {canton_id} tarif {tarif.name} rows must be strictly increasing by 'amount' (idx={idx})")
        last_amount = row.amount

        if tarif.table_type == TableType.BRACKET:
            if row.percent is None or row.percent < 0:
                raise ValueError(f"Canton {canton_id} tarif {tarif.name} row {idx}: percent must be >= 0")
        elif row.formula is None:
            raise ValueError(f"Canton {canton_id} tarif {tarif.name} row {idx}: formula missing")
