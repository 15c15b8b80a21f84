from decimal import Decimal
from typing import Iterable
from .church import calculate_church_tax
from .factors import LEGISLATIVE_REDUCTIONS, apply_factors
from .models import CHF, ChurchTaxBases, LegislativeReduction, TaxInput, TaxResult, chf
from .money import round_whole
from .tarif import income_tarif_for, simple_tax


async def calculate_taxes(
    tax_input: TaxInput,
    taxable_income: CHF | int,
    taxable_wealth: CHF | int,
    provider,
    reductions: Iterable[LegislativeReduction] = LEGISLATIVE_REDUCTIONS,
) -> TaxResult:
    """
    Cantonal, municipal and church taxes on income and wealth.

    taxable amounts -> simple tax via the canton's tariffs -> rate factors
    -> church tax on the canton's church base. Church sums are rounded to
    whole CHF here.
    """
    income = chf(taxable_income)
    wealth = chf(taxable_wealth)

    tarifs = await provider.get_tarifs(tax_input.canton_id, tax_input.year)
    factors = await provider.get_tax_factors(tax_input)

    income_simple = simple_tax(income, income_tarif_for(tarifs, len(tax_input.persons)))
    wealth_simple = simple_tax(wealth, tarifs.wealth)

    cc = apply_factors(tax_input, income_simple, wealth_simple, factors, reductions)

    bases = ChurchTaxBases(
        taxes_income_base=income_simple,
        taxes_income_canton=cc.taxes_income_canton,
        taxes_income_city=cc.taxes_income_city,
        taxes_wealth_base=wealth_simple,
        taxes_wealth_canton=cc.taxes_wealth_canton,
        taxes_wealth_city=cc.taxes_wealth_city,
        taxable_income_canton=income,
        taxable_wealth_canton=wealth,
    )
    church = calculate_church_tax(tax_input, bases, factors)
    income_church = round_whole(church.taxes_income_church)
    wealth_church = round_whole(church.taxes_wealth_church)

    total = sum(
        (cc.taxes_income_canton, cc.taxes_income_city, income_church,
         cc.taxes_wealth_canton, cc.taxes_wealth_city, wealth_church),
        Decimal(0),
    )
    return TaxResult(
        canton_id=tax_input.canton_id,
        city_id=tax_input.city_id,
        year=tax_input.year,
        taxable_income=income,
        taxable_wealth=wealth,
        income_simple=income_simple,
        wealth_simple=wealth_simple,
        taxes_income_canton=cc.taxes_income_canton,
        taxes_income_city=cc.taxes_income_city,
        taxes_income_church=income_church,
        taxes_wealth_canton=cc.taxes_wealth_canton,
        taxes_wealth_city=cc.taxes_wealth_city,
        taxes_wealth_church=wealth_church,
        total=total,
    )
