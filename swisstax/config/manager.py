"""Configuration manager for the per-year tax data directories.

Handles listing, copying and editing year data (locations, factors, tarifs).
"""

from __future__ import annotations
import shutil
from pathlib import Path
from ruamel.yaml import YAML
from typing import Dict, Any, List, Optional
from datetime import datetime

from ..engine.models import TaxFactors
from ..io.loader import FACTORS_FILE, LOCATIONS_FILE, TARIFS_FILE, load_factors, load_locations, load_tarifs


class ConfigManager:
    """Manager for per-year Swiss tax data files."""

    def __init__(self, config_root: Path):
        """Initialize config manager.

        Args:
            config_root: Path to the configs directory
        """
        self.config_root = Path(config_root)

    def _yaml(self) -> YAML:
        # round-trip mode keeps comments and key order of hand-maintained files
        yaml_handler = YAML()
        yaml_handler.preserve_quotes = True
        yaml_handler.width = 150
        yaml_handler.indent(mapping=2, sequence=4, offset=2)
        return yaml_handler

    def get_available_years(self) -> List[int]:
        """Get list of available tax years."""
        years = []
        if not self.config_root.exists():
            return years

        for item in self.config_root.iterdir():
            if item.is_dir() and item.name.isdigit():
                years.append(int(item.name))

        return sorted(years)

    def year_exists(self, year: int) -> bool:
        """Check if all data files of a tax year exist."""
        year_dir = self.config_root / str(year)
        return all((year_dir / name).exists() for name in (LOCATIONS_FILE, FACTORS_FILE, TARIFS_FILE))

    def create_year(self, source_year: int, target_year: int, overwrite: bool = False) -> Dict[str, Any]:
        """Create new year data by copying an existing year.

        Args:
            source_year: Year to copy from
            target_year: Year to create
            overwrite: Whether to overwrite if target exists

        Returns:
            Dict with operation result
        """
        source_dir = self.config_root / str(source_year)
        target_dir = self.config_root / str(target_year)

        if not source_dir.exists():
            raise ValueError(f"Source year {source_year} does not exist")

        if target_dir.exists() and not overwrite:
            raise ValueError(f"Target year {target_year} already exists. Use overwrite=True to replace.")

        if target_dir.exists() and overwrite:
            shutil.rmtree(target_dir)

        shutil.copytree(source_dir, target_dir, ignore=shutil.ignore_patterns("_archive"))

        return {
            "source_year": source_year,
            "target_year": target_year,
            "success": True,
            "message": f"Successfully created {target_year} configuration from {source_year}"
        }

    def set_factor(
        self,
        year: int,
        field: str,
        value: float,
        canton_id: Optional[int] = None,
        city_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Set one rate factor of a canton (or municipality) record.

        Always creates an archive copy of the existing factors file before
        overwriting it.
        """
        if (canton_id is None) == (city_id is None):
            raise ValueError("Provide exactly one of canton_id or city_id")
        if field not in TaxFactors.model_fields:
            raise ValueError(f"Unknown factor '{field}'. Available: {sorted(TaxFactors.model_fields)}")

        year_dir = self.config_root / str(year)
        factors_file = year_dir / FACTORS_FILE
        if not factors_file.exists():
            raise FileNotFoundError(f"Factors file not found: {factors_file}")

        yaml_handler = self._yaml()
        with factors_file.open("r", encoding="utf-8") as f:
            data = yaml_handler.load(f)

        section, key = ("cantons", canton_id) if canton_id is not None else ("cities", city_id)
        records = data.get(section) or {}
        if key not in records:
            raise ValueError(f"No factors for {section[:-1]} {key} in {year}")

        if value < 0:
            raise ValueError(f"Factor {field} must be >= 0")
        old_value = records[key].get(field)
        records[key][field] = value
        # validate before anything touches the disk
        TaxFactors(**dict(records[key]))

        archive_dir = year_dir / "_archive"
        archive_dir.mkdir(exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        archive_file = archive_dir / f"factors_{timestamp}.yaml"
        shutil.copy2(factors_file, archive_file)

        try:
            with factors_file.open("w", encoding="utf-8") as f:
                yaml_handler.dump(data, f)
            load_factors(self.config_root, year)
        except Exception as e:
            shutil.copy2(archive_file, factors_file)
            raise ValueError(f"Failed to save factors: {str(e)}")

        return {
            "success": True,
            "year": year,
            section[:-1]: key,
            "field": field,
            "old_value": old_value,
            "new_value": value,
            "archive_file": str(archive_file),
        }

    def get_config_summary(self, year: int) -> Dict[str, Any]:
        """Get summary of the data for a year."""
        locations = load_locations(self.config_root, year).locations
        factors = load_factors(self.config_root, year)
        tarifs = load_tarifs(self.config_root, year)

        cantons_summary = []
        for canton_id, tarif_set in sorted(tarifs.cantons.items()):
            cities = [loc for loc in locations if loc.canton_id == canton_id]
            cantons_summary.append({
                "canton_id": canton_id,
                "abbreviation": cities[0].canton if cities else None,
                "income_tarif": tarif_set.income.table_type.value,
                "has_married_tarif": tarif_set.income_married is not None,
                "wealth_tarif": tarif_set.wealth.table_type.value,
                "has_factors": canton_id in factors.cantons,
                "municipalities": [loc.name for loc in cities],
            })

        return {
            "year": year,
            "location_count": len(locations),
            "canton_count": len(tarifs.cantons),
            "city_factor_overrides": sorted(factors.cities),
            "cantons": cantons_summary,
        }
