import logging
from decimal import Decimal
from typing import Iterable, Optional, Protocol
from .models import (
    CHF, Canton, CantonCityTaxes, Confession, LegislativeReduction, TaxFactors, TaxInput,
)
from .money import multiply_percent, round_whole

logger = logging.getLogger(__name__)

# Vaud: linear reduction of the cantonal tax for 2024 and 2025
LEGISLATIVE_REDUCTIONS = (
    LegislativeReduction(canton=Canton.VD, years=frozenset({2024, 2025}), factor=Decimal("0.965")),
)


class FactorSource(Protocol):
    async def get_tax_factors(self, tax_input: TaxInput) -> TaxFactors: ...


def church_income_rate(confession: Confession, factors: TaxFactors) -> float:
    if confession == Confession.CHRIST:
        return factors.income_rate_christ
    if confession == Confession.ROMAN:
        return factors.income_rate_roman
    if confession == Confession.PROTESTANT:
        return factors.income_rate_protestant
    return 0.0


def church_wealth_rate(confession: Confession, factors: TaxFactors) -> float:
    if confession == Confession.CHRIST:
        return factors.wealth_rate_christ
    if confession == Confession.ROMAN:
        return factors.wealth_rate_roman
    if confession == Confession.PROTESTANT:
        return factors.wealth_rate_protestant
    return 0.0


def find_reduction(
    canton_id: int,
    year: int,
    reductions: Iterable[LegislativeReduction] = LEGISLATIVE_REDUCTIONS,
) -> Optional[LegislativeReduction]:
    return next((r for r in reductions if r.applies(canton_id, year)), None)


def apply_factors(
    tax_input: TaxInput,
    taxes_income_base: CHF,
    taxes_wealth_base: CHF,
    factors: TaxFactors,
    reductions: Iterable[LegislativeReduction] = LEGISLATIVE_REDUCTIONS,
) -> CantonCityTaxes:
    """
    Each Steuerfuss applies to the simple tax independently:
    canton = base * canton rate %, city = base * city rate %, whole CHF.
    Church tax is computed separately (see church.py) and stays 0 here.
    """
    taxes_income_canton = round_whole(multiply_percent(taxes_income_base, factors.income_rate_canton, 5))
    taxes_income_city = round_whole(multiply_percent(taxes_income_base, factors.income_rate_city, 5))
    taxes_wealth_canton = round_whole(multiply_percent(taxes_wealth_base, factors.wealth_rate_canton, 5))
    taxes_wealth_city = round_whole(multiply_percent(taxes_wealth_base, factors.wealth_rate_city, 5))

    reduction = find_reduction(tax_input.canton_id, tax_input.year, reductions)
    if reduction is not None:
        logger.debug("Cantonal share reduced by factor %s (canton %s, %s)",
                     reduction.factor, tax_input.canton_id, tax_input.year)
        taxes_income_canton = round_whole(taxes_income_canton * reduction.factor)
        taxes_wealth_canton = round_whole(taxes_wealth_canton * reduction.factor)

    return CantonCityTaxes(
        taxes_income_canton=taxes_income_canton,
        taxes_income_city=taxes_income_city,
        taxes_income_church=Decimal(0),
        taxes_wealth_canton=taxes_wealth_canton,
        taxes_wealth_city=taxes_wealth_city,
        taxes_wealth_church=Decimal(0),
    )


async def calculate_taxes_canton_and_city(
    tax_input: TaxInput,
    taxes_income_base: CHF,
    taxes_income_base_church: CHF,
    taxes_wealth_base: CHF,
    provider: FactorSource,
    reductions: Iterable[LegislativeReduction] = LEGISLATIVE_REDUCTIONS,
) -> CantonCityTaxes:
    """Fetch the rate factors once and apply them to the simple taxes.

    `taxes_income_base_church` is accepted for call compatibility only; the
    church base is selected per canton in church.py.
    """
    factors = await provider.get_tax_factors(tax_input)
    return apply_factors(tax_input, taxes_income_base, taxes_wealth_base, factors, reductions)
