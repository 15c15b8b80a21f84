from __future__ import annotations
import asyncio
import json
import logging
import platform
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import typer
from rich import print as rprint

from .config.manager import ConfigManager
from .engine.bracket import bracket_info
from .engine.calculator import calculate_taxes
from .engine.models import Confession, Person, TableType, TaxInput, TaxResult
from .engine.tarif import income_tarif_for
from .io.loader import CONFIG_ROOT, validate_year
from .io.provider import TaxDataProvider
from .version import SCHEMA_VERSION, SWISSTAX_VERSION
from .viz.curve import plot_curve

app = typer.Typer(help="Swiss cantonal, municipal and church tax CLI, data driven")

VALID_CONFESSIONS = {c.value for c in Confession}

# Error codes for JSON responses
ERROR_CODES = {
    "INVALID_INPUT": 2,
    "CALCULATION_ERROR": 3,
    "FILE_NOT_FOUND": 4,
    "VALIDATION_ERROR": 5,
    "INTERNAL_ERROR": 8,
}


def _provider() -> TaxDataProvider:
    return TaxDataProvider(CONFIG_ROOT)


def _create_console_with_imports():
    """Create Rich console with all required imports."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text
    from rich.table import Table

    return Console(), Panel, Text, Table


def _create_json_response(data: Any, success: bool = True) -> Dict[str, Any]:
    """Create standardized JSON response envelope.

    Args:
        data: The response data to wrap
        success: Whether this is a success response

    Returns:
        Dict with standardized response envelope
    """
    return {
        "success": success,
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data
    }


def _create_json_error(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create standardized JSON error response."""
    error_data = {
        "code": code,
        "message": message
    }
    if details:
        error_data["details"] = details

    return {
        "success": False,
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error": error_data
    }


def _handle_json_error(error: Exception, json_mode: bool = False) -> None:
    """Handle exceptions and output appropriate error format.

    Args:
        error: The exception that occurred
        json_mode: Whether to output JSON error format
    """
    if isinstance(error, ValueError):
        code = "INVALID_INPUT"
    elif isinstance(error, FileNotFoundError):
        code = "FILE_NOT_FOUND"
    elif isinstance(error, ArithmeticError):
        code = "CALCULATION_ERROR"
    else:
        code = "INTERNAL_ERROR"
    message = str(error) if code != "INTERNAL_ERROR" else f"Unexpected error: {str(error)}"

    if json_mode:
        print(json.dumps(_create_json_error(code, message), indent=2))
    else:
        rprint({"error": str(error)})
    raise typer.Exit(code=ERROR_CODES[code])


def _validate_confessions(values: List[str]) -> List[str]:
    """Validate --confession values (one per person)."""
    cleaned = []
    for value in values or []:
        value = value.strip().lower()
        if value not in VALID_CONFESSIONS:
            raise typer.BadParameter(
                f"Confession must be one of: {', '.join(sorted(VALID_CONFESSIONS))}"
            )
        cleaned.append(value)
    return cleaned


def _persons(confessions: List[str]) -> List[Person]:
    if not confessions:
        return [Person(confession=Confession.NONE)]
    return [Person(confession=Confession(c)) for c in confessions]


def coerce(d):
    """Decimals to floats for JSON friendliness."""
    if isinstance(d, Decimal):
        return float(d)
    elif isinstance(d, dict):
        return {k: coerce(v) for k, v in d.items()}
    elif isinstance(d, list):
        return [coerce(x) for x in d]
    return d


def _result_to_dict(result: TaxResult) -> Dict[str, Any]:
    return coerce({
        "canton_id": result.canton_id,
        "city_id": result.city_id,
        "year": result.year,
        "taxable_income": result.taxable_income,
        "taxable_wealth": result.taxable_wealth,
        "income_simple": result.income_simple,
        "wealth_simple": result.wealth_simple,
        "taxes_income_canton": result.taxes_income_canton,
        "taxes_income_city": result.taxes_income_city,
        "taxes_income_church": result.taxes_income_church,
        "taxes_wealth_canton": result.taxes_wealth_canton,
        "taxes_wealth_city": result.taxes_wealth_city,
        "taxes_wealth_church": result.taxes_wealth_church,
        "total": result.total,
    })


async def _calc_for_city(
    provider: TaxDataProvider, year: int, city: int, income: int, wealth: int, persons: List[Person]
) -> TaxResult:
    canton_id = await provider.get_canton_id_by_city_id(city, year)
    tax_input = TaxInput(canton_id=canton_id, city_id=city, year=year, persons=persons)
    return await calculate_taxes(tax_input, income, wealth, provider)


def _print_calculation_result(res: Dict[str, Any]):
    """Print a user-friendly tax calculation result."""
    console, Panel, Text, Table = _create_console_with_imports()

    income = res["taxable_income"]
    total = res["total"]
    avg_rate = (total / income * 100) if income > 0 else 0.0

    calc_text = Text()
    calc_text.append("💰 TAX CALCULATION RESULTS\n\n", style="bold green")
    calc_text.append(f"Location: {res.get('city_name', res['city_id'])} ({res.get('canton', res['canton_id'])})\n", style="cyan")
    calc_text.append(f"Taxable Income: {income:,.0f} CHF\n", style="bold cyan")
    calc_text.append(f"Taxable Wealth: {res['taxable_wealth']:,.0f} CHF\n", style="cyan")
    calc_text.append(f"Total Tax: {total:,.2f} CHF\n", style="bold red")
    calc_text.append(f"Average Rate on Income: {avg_rate:.2f}%", style="bold yellow")
    bracket = res.get("income_bracket")
    if bracket:
        upper = f"{bracket['upper']:,.0f}" if bracket["upper"] is not None else "+"
        calc_text.append(
            f"\nIncome Bracket: {bracket['lower']:,.0f} - {upper} CHF at {bracket['rate_percent']:.2f}%",
            style="dim",
        )
    console.print(Panel(calc_text, title="swisstax Calculation", border_style="green"))

    tax_table = Table(title="📊 Tax Component Breakdown", show_header=True, header_style="bold blue")
    tax_table.add_column("Component", style="cyan")
    tax_table.add_column("Income (CHF)", justify="right", style="green")
    tax_table.add_column("Wealth (CHF)", justify="right", style="yellow")
    tax_table.add_row("Simple Tax", f"{res['income_simple']:,.2f}", f"{res['wealth_simple']:,.2f}")
    tax_table.add_row("Canton", f"{res['taxes_income_canton']:,.0f}", f"{res['taxes_wealth_canton']:,.0f}")
    tax_table.add_row("Municipality", f"{res['taxes_income_city']:,.0f}", f"{res['taxes_wealth_city']:,.0f}")
    tax_table.add_row("Church", f"{res['taxes_income_church']:,.0f}", f"{res['taxes_wealth_church']:,.0f}")
    console.print("\n", tax_table)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
):
    """Swiss tax CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version(
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """Show version information."""
    version_data = {
        "version": SWISSTAX_VERSION,
        "schema_version": SCHEMA_VERSION,
        "platform": platform.system().lower()
    }
    if json_out:
        print(json.dumps(_create_json_response(version_data), indent=2))
    else:
        console, Panel, Text, _ = _create_console_with_imports()
        version_text = Text()
        version_text.append(f"swisstax version {SWISSTAX_VERSION}\n", style="bold green")
        version_text.append(f"Platform: {platform.system()}\n")
        version_text.append(f"Schema version: {SCHEMA_VERSION}", style="cyan")
        console.print(Panel(version_text, title="Version Information", border_style="blue"))


@app.command()
def calc(
    year: int = typer.Option(..., min=1900, help="Tax year, e.g., 2025"),
    city: int = typer.Option(..., help="BFS number of the municipality"),
    income: int = typer.Option(..., min=0, help="Taxable cantonal income (CHF)"),
    wealth: int = typer.Option(0, min=0, help="Taxable cantonal wealth (CHF)"),
    confession: List[str] = typer.Option(
        [], callback=lambda ctx, param, value: _validate_confessions(value),
        help="Confession per person (none, christ, roman, protestant); repeat for each person",
    ),
    json_out: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Compute cantonal, municipal and church taxes on income and wealth.

    Examples:
      --year 2025 --city 261 --income 80000 --wealth 150000
      --year 2025 --city 2829 --income 120000 --confession roman --confession protestant
    """
    provider = _provider()
    persons = _persons(confession)
    try:
        result = asyncio.run(_calc_for_city(provider, year, city, income, wealth, persons))
        locations = {loc.city_id: loc for loc in asyncio.run(provider.get_tax_locations(year))}
        tarifs = asyncio.run(provider.get_tarifs(result.canton_id, year))
    except Exception as e:
        _handle_json_error(e, json_out)
        return

    res = _result_to_dict(result)
    res["city_name"] = locations[city].name
    res["canton"] = locations[city].canton
    res["confessions"] = [p.confession.value for p in persons]
    income_tarif = income_tarif_for(tarifs, len(persons))
    if income_tarif.table_type == TableType.BRACKET:
        res["income_bracket"] = bracket_info(income, income_tarif)

    if json_out:
        print(json.dumps(_create_json_response(res), indent=2))
    else:
        _print_calculation_result(res)


@app.command()
def plot(
    year: int = typer.Option(...),
    city: int = typer.Option(..., help="BFS number of the municipality"),
    min: int = typer.Option(0, help="Min income"),
    max: int = typer.Option(..., help="Max income"),
    step: int = typer.Option(1000, min=1),
    wealth: int = typer.Option(0, min=0, help="Taxable wealth held constant along the curve"),
    confession: List[str] = typer.Option(
        [], callback=lambda ctx, param, value: _validate_confessions(value),
        help="Confession per person; repeat for each person",
    ),
    out: str = typer.Option("curve.png"),
):
    """Plot canton, municipality and church tax over a range of incomes."""
    provider = _provider()
    persons = _persons(confession)

    async def _sweep():
        pts = []
        for x in range(min, max + 1, step):
            r = await _calc_for_city(provider, year, city, x, wealth, persons)
            pts.append((x, {
                "canton": r.taxes_income_canton + r.taxes_wealth_canton,
                "city": r.taxes_income_city + r.taxes_wealth_city,
                "church": r.taxes_income_church + r.taxes_wealth_church,
                "total": r.total,
            }))
        return pts

    try:
        pts = asyncio.run(_sweep())
    except Exception as e:
        _handle_json_error(e)
        return

    plot_curve(pts, out, title=f"Tax curve {year}, municipality {city}")
    rprint({"saved": out, "points": len(pts)})


@app.command()
def locations(
    year: Optional[int] = typer.Option(None, help="Tax year (defaults to the nearest year with data)"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """List the municipalities of a year.

    Without --year the most recent year that has data is used, walking back
    from the current year.
    """
    try:
        provider = _provider()
        resolved = year if year is not None else asyncio.run(provider.get_nearest_year_with_data())
        locs = asyncio.run(provider.get_tax_locations(resolved))
    except Exception as e:
        _handle_json_error(e, json_out)
        return

    result_data = {
        "year": resolved,
        "locations": [loc.model_dump() for loc in locs],
    }
    if json_out:
        print(json.dumps(_create_json_response(result_data), indent=2))
    else:
        console, _, _, Table = _create_console_with_imports()
        table = Table(title=f"📍 Municipalities {resolved}", show_header=True, header_style="bold blue")
        table.add_column("BFS", justify="right", style="yellow")
        table.add_column("Municipality", style="cyan")
        table.add_column("Canton", justify="center")
        for loc in locs:
            table.add_row(str(loc.city_id), loc.name, f"{loc.canton} ({loc.canton_id})")
        console.print(table)


@app.command()
def validate(
    year: int = typer.Option(..., help="Tax year to validate"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """Validate data files for given year."""
    try:
        counts = validate_year(CONFIG_ROOT, year)
        result_data = {"status": "valid", "year": year, "message": "All data files valid", **counts}

        if json_out:
            print(json.dumps(_create_json_response(result_data), indent=2))
        else:
            rprint(result_data)
    except Exception as e:
        if json_out:
            error_response = _create_json_error("VALIDATION_ERROR", str(e), {"year": year})
            print(json.dumps(error_response, indent=2))
        else:
            rprint({"status": "invalid", "year": year, "error": str(e)})
        raise typer.Exit(code=ERROR_CODES["VALIDATION_ERROR"])


@app.command()
def list_years(
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """List all available tax years."""
    years = ConfigManager(CONFIG_ROOT).get_available_years()
    result_data = {"available_years": years, "count": len(years)}

    if json_out:
        print(json.dumps(_create_json_response(result_data), indent=2))
    else:
        console, Panel, Text, _ = _create_console_with_imports()
        years_text = Text()
        years_text.append("📅 AVAILABLE TAX YEARS\n\n", style="bold green")
        if years:
            for y in years:
                years_text.append(f"• {y}\n", style="yellow")
        else:
            years_text.append("No tax years found in configuration directory.", style="red")
        console.print(Panel(years_text, title="Tax Years", border_style="blue"))


@app.command()
def create_year(
    source_year: int = typer.Option(..., help="Year to copy data from"),
    target_year: int = typer.Option(..., help="New year to create"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite target year if it exists"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """Create new tax year by copying the data of an existing year."""
    try:
        result = ConfigManager(CONFIG_ROOT).create_year(source_year, target_year, overwrite)
    except Exception as e:
        _handle_json_error(e, json_out)
        return

    if json_out:
        print(json.dumps(_create_json_response(result), indent=2))
    else:
        rprint(result)


@app.command()
def set_factor(
    year: int = typer.Option(..., help="Tax year to update"),
    field: str = typer.Option(..., help="Factor name, e.g. income_rate_city"),
    value: float = typer.Option(..., help="New rate in percent"),
    canton: Optional[int] = typer.Option(None, help="Canton id of the record to update"),
    city: Optional[int] = typer.Option(None, help="BFS number of a municipality record to update"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """Update one rate factor. The previous factors file is archived."""
    try:
        result = ConfigManager(CONFIG_ROOT).set_factor(year, field, value, canton_id=canton, city_id=city)
    except Exception as e:
        _handle_json_error(e, json_out)
        return

    if json_out:
        print(json.dumps(_create_json_response(result), indent=2))
    else:
        rprint(result)


@app.command()
def config_summary(
    year: int = typer.Option(2025, help="Tax year to summarize"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON format"),
):
    """Summarize cantons, tariffs and municipalities of a year."""
    try:
        config_manager = ConfigManager(CONFIG_ROOT)
        if not config_manager.year_exists(year):
            raise ValueError(f"Configuration for year {year} does not exist")
        summary = config_manager.get_config_summary(year)
    except Exception as e:
        _handle_json_error(e, json_out)
        return

    if json_out:
        print(json.dumps(_create_json_response(summary), indent=2))
        return

    console, Panel, Text, Table = _create_console_with_imports()
    summary_text = Text()
    summary_text.append(f"📋 TAX DATA SUMMARY - {year}\n\n", style="bold green")
    summary_text.append(f"Municipalities: {summary['location_count']}\n", style="cyan")
    summary_text.append(f"Cantons: {summary['canton_count']}", style="yellow")
    console.print(Panel(summary_text, title="Configuration Overview", border_style="green"))

    cantons_table = Table(title="📍 Cantons", show_header=True, header_style="bold blue")
    cantons_table.add_column("Id", justify="right")
    cantons_table.add_column("Canton", style="cyan")
    cantons_table.add_column("Income Tarif", justify="center")
    cantons_table.add_column("Wealth Tarif", justify="center")
    cantons_table.add_column("Municipalities", style="dim")
    for canton in summary["cantons"]:
        names = ", ".join(canton["municipalities"])
        cantons_table.add_row(
            str(canton["canton_id"]),
            canton["abbreviation"] or "-",
            canton["income_tarif"] + (" (+married)" if canton["has_married_tarif"] else ""),
            canton["wealth_tarif"],
            names[:50] + "..." if len(names) > 50 else names,
        )
    console.print("\n", cantons_table)
