"""Tests for the swisstax command line interface."""

import json
import shutil
import pytest
import typer
from decimal import InvalidOperation
from typer.testing import CliRunner

from swisstax import cli
from swisstax.cli import app

runner = CliRunner()


@pytest.fixture
def data_copy(tmp_path, config_root, monkeypatch):
    """Point the CLI at a writable copy of the shipped data."""
    root = tmp_path / "configs"
    shutil.copytree(config_root, root)
    monkeypatch.setattr(cli, "CONFIG_ROOT", root)
    return root


def _json(result):
    return json.loads(result.stdout)


class TestCalcCommand:
    """calc computes taxes for a municipality."""

    def test_json_output(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "80000", "--json"])
        assert result.exit_code == 0, result.output
        payload = _json(result)
        assert payload["success"] is True
        assert payload["schema_version"] == cli.SCHEMA_VERSION
        data = payload["data"]
        assert data["total"] == 9743.0
        assert data["city_name"] == "Zürich"
        assert data["canton"] == "ZH"
        assert data["confessions"] == ["none"]

    def test_confessions_per_person(self):
        result = runner.invoke(app, [
            "calc", "--year", "2025", "--city", "261", "--income", "80000",
            "--confession", "roman", "--confession", "Protestant", "--json",
        ])
        assert result.exit_code == 0, result.output
        data = _json(result)["data"]
        assert data["confessions"] == ["roman", "protestant"]
        # married tariff for two persons
        assert data["income_simple"] == 3351.0

    def test_income_bracket(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "80000", "--json"])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"]["income_bracket"] == {"lower": 73000.0, "upper": 105500.0, "rate_percent": 9.0}

    def test_income_bracket_married_tarif(self):
        result = runner.invoke(app, [
            "calc", "--year", "2025", "--city", "261", "--income", "80000",
            "--confession", "none", "--confession", "none", "--json",
        ])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"]["income_bracket"]["lower"] == 79100.0

    def test_no_income_bracket_for_formula_tarif(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "2829", "--income", "90026", "--json"])
        assert result.exit_code == 0, result.output
        assert "income_bracket" not in _json(result)["data"]

    def test_rich_output(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "80000"])
        assert result.exit_code == 0, result.output
        assert "Total Tax" in result.output
        assert "Church" in result.output
        assert "Income Bracket" in result.output

    def test_invalid_confession(self):
        result = runner.invoke(app, [
            "calc", "--year", "2025", "--city", "261", "--income", "80000", "--confession", "jedi",
        ])
        assert result.exit_code == 2

    def test_unknown_city(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "9999", "--income", "80000", "--json"])
        assert result.exit_code == cli.ERROR_CODES["INVALID_INPUT"]
        payload = _json(result)
        assert payload["success"] is False
        assert payload["error"]["code"] == "INVALID_INPUT"
        assert "Location not found" in payload["error"]["message"]

    def test_missing_year(self):
        result = runner.invoke(app, ["calc", "--year", "1999", "--city", "261", "--income", "80000", "--json"])
        assert result.exit_code == cli.ERROR_CODES["FILE_NOT_FOUND"]
        assert _json(result)["error"]["code"] == "FILE_NOT_FOUND"

    def test_negative_income_rejected(self):
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "-5"])
        assert result.exit_code == 2


class TestLocationsCommand:
    """locations lists municipalities of a year."""

    def test_explicit_year(self):
        result = runner.invoke(app, ["locations", "--year", "2025", "--json"])
        assert result.exit_code == 0, result.output
        data = _json(result)["data"]
        assert data["year"] == 2025
        assert len(data["locations"]) == 9
        assert data["locations"][0] == {"city_id": 261, "name": "Zürich", "canton_id": 26, "canton": "ZH"}

    def test_nearest_year(self, data_copy):
        result = runner.invoke(app, ["locations", "--json"])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"]["year"] == 2025

    def test_no_data(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "CONFIG_ROOT", tmp_path)
        result = runner.invoke(app, ["locations", "--json"])
        assert result.exit_code == cli.ERROR_CODES["FILE_NOT_FOUND"]

    def test_table_output(self):
        result = runner.invoke(app, ["locations", "--year", "2025"])
        assert result.exit_code == 0, result.output
        assert "Liestal" in result.output


class TestDataCommands:
    """validate, list-years, create-year, set-factor and config-summary."""

    def test_validate(self):
        result = runner.invoke(app, ["validate", "--year", "2025", "--json"])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"]["status"] == "valid"

    def test_validate_missing_year(self):
        result = runner.invoke(app, ["validate", "--year", "1999", "--json"])
        assert result.exit_code == cli.ERROR_CODES["VALIDATION_ERROR"]
        assert _json(result)["error"]["code"] == "VALIDATION_ERROR"

    def test_list_years(self, data_copy):
        result = runner.invoke(app, ["list-years", "--json"])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"] == {"available_years": [2025], "count": 1}

    def test_create_year(self, data_copy):
        result = runner.invoke(app, ["create-year", "--source-year", "2025", "--target-year", "2026", "--json"])
        assert result.exit_code == 0, result.output
        assert (data_copy / "2026" / "tarifs.yaml").exists()

        again = runner.invoke(app, ["create-year", "--source-year", "2025", "--target-year", "2026", "--json"])
        assert again.exit_code == cli.ERROR_CODES["INVALID_INPUT"]

    def test_set_factor(self, data_copy):
        result = runner.invoke(app, [
            "set-factor", "--year", "2025", "--field", "income_rate_city", "--value", "120",
            "--canton", "26", "--json",
        ])
        assert result.exit_code == 0, result.output
        data = _json(result)["data"]
        assert data["old_value"] == 119
        assert data["new_value"] == 120.0

        calc = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "80000", "--json"])
        # 4490 * 120 %
        assert _json(calc)["data"]["taxes_income_city"] == 5388.0

    def test_set_factor_unknown_field(self, data_copy):
        result = runner.invoke(app, [
            "set-factor", "--year", "2025", "--field", "income_rate_other", "--value", "1", "--canton", "26",
        ])
        assert result.exit_code == cli.ERROR_CODES["INVALID_INPUT"]

    def test_config_summary(self):
        result = runner.invoke(app, ["config-summary", "--year", "2025", "--json"])
        assert result.exit_code == 0, result.output
        data = _json(result)["data"]
        assert data["location_count"] == 9
        assert data["city_factor_overrides"] == [3203]

    def test_config_summary_missing_year(self):
        result = runner.invoke(app, ["config-summary", "--year", "1999", "--json"])
        assert result.exit_code == cli.ERROR_CODES["INVALID_INPUT"]


class TestMiscCommands:
    """version and plot."""

    def test_version(self):
        result = runner.invoke(app, ["version", "--json"])
        assert result.exit_code == 0, result.output
        assert _json(result)["data"]["version"] == cli.SWISSTAX_VERSION

    def test_log_level_option(self):
        result = runner.invoke(app, ["--log-level", "DEBUG", "version", "--json"])
        assert result.exit_code == 0, result.output

    def test_plot(self, tmp_path):
        out = tmp_path / "curve.png"
        result = runner.invoke(app, [
            "plot", "--year", "2025", "--city", "261", "--min", "0", "--max", "100000",
            "--step", "20000", "--confession", "roman", "--out", str(out),
        ])
        assert result.exit_code == 0, result.output
        assert out.exists()
        assert out.stat().st_size > 0


class TestErrorMapping:
    """Exceptions map to exit codes and JSON error codes."""

    @pytest.mark.parametrize("error,code", [
        (ValueError("bad input"), "INVALID_INPUT"),
        (FileNotFoundError("missing"), "FILE_NOT_FOUND"),
        (ZeroDivisionError("division by zero"), "CALCULATION_ERROR"),
        (InvalidOperation(), "CALCULATION_ERROR"),
        (RuntimeError("boom"), "INTERNAL_ERROR"),
    ])
    def test_handle_json_error(self, error, code, capsys):
        with pytest.raises(typer.Exit) as exc_info:
            cli._handle_json_error(error, json_mode=True)
        assert exc_info.value.exit_code == cli.ERROR_CODES[code]
        assert json.loads(capsys.readouterr().out)["error"]["code"] == code

    def test_calculation_error_from_command(self, monkeypatch):
        async def failing(*args, **kwargs):
            raise ZeroDivisionError("division by zero")

        monkeypatch.setattr(cli, "calculate_taxes", failing)
        result = runner.invoke(app, ["calc", "--year", "2025", "--city", "261", "--income", "80000", "--json"])
        assert result.exit_code == cli.ERROR_CODES["CALCULATION_ERROR"]
        assert _json(result)["error"]["code"] == "CALCULATION_ERROR"
