"""Church tax (Kirchensteuer).

The base the church rate applies to differs per canton (ESTV, Steuerbelastung
in der Schweiz, Ziff. 3.2):

  UR      1 % of taxable income + 0.3 permille of taxable wealth + CHF 30
  BL      christ / protestant: taxable income and wealth,
          roman: cantonal tax amount
  BS, TI, JU, NE
          cantonal tax amount (NE adds a flat CHF 10)
  VS      municipal tax amount
  GE      simple tax, at least CHF 10
  others  simple tax
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Tuple

from .factors import church_income_rate, church_wealth_rate
from .models import (
    CHF, Canton, ChurchTaxBases, ChurchTaxes, Confession, TaxFactors, TaxInput, chf,
)
from .money import add_many, max_of, multiply_percent

logger = logging.getLogger(__name__)

UR_FLAT_AMOUNT = Decimal(30)
NE_FLAT_SURCHARGE = Decimal(10)
GE_MINIMUM_TAX = Decimal(10)

BaseSelector = Callable[[ChurchTaxBases, Confession], Tuple[CHF, CHF]]


class ChurchMode(Enum):
    # one base folding income and wealth together, split across persons
    COMPOSITE = "composite"
    # base depends on each person's confession, no split
    PER_CONFESSION = "per_confession"
    # one base for all persons, split across persons
    SHARED = "shared"


def _unchanged(taxes: ChurchTaxes) -> ChurchTaxes:
    return taxes


@dataclass(frozen=True)
class ChurchRule:
    mode: ChurchMode
    bases: BaseSelector
    adjust: Callable[[ChurchTaxes], ChurchTaxes] = _unchanged


def composite_base(bases: ChurchTaxBases) -> CHF:
    return add_many((
        multiply_percent(bases.taxable_income_canton, 1, 2),
        multiply_percent(bases.taxable_wealth_canton, Decimal("0.03"), 2),
        UR_FLAT_AMOUNT,
    ))


def _composite_bases(bases: ChurchTaxBases, confession: Confession) -> Tuple[CHF, CHF]:
    return composite_base(bases), Decimal(0)


def _simple_tax_bases(bases: ChurchTaxBases, confession: Confession) -> Tuple[CHF, CHF]:
    return bases.taxes_income_base, bases.taxes_wealth_base


def _canton_tax_bases(bases: ChurchTaxBases, confession: Confession) -> Tuple[CHF, CHF]:
    return bases.taxes_income_canton, bases.taxes_wealth_canton


def _city_tax_bases(bases: ChurchTaxBases, confession: Confession) -> Tuple[CHF, CHF]:
    return bases.taxes_income_city, bases.taxes_wealth_city


def _confession_bases(bases: ChurchTaxBases, confession: Confession) -> Tuple[CHF, CHF]:
    if confession in (Confession.CHRIST, Confession.PROTESTANT):
        return bases.taxable_income_canton, bases.taxable_wealth_canton
    if confession == Confession.ROMAN:
        return bases.taxes_income_canton, bases.taxes_wealth_canton
    return Decimal(0), Decimal(0)


def _flat_surcharge(taxes: ChurchTaxes) -> ChurchTaxes:
    return replace(taxes, taxes_income_church=taxes.taxes_income_church + NE_FLAT_SURCHARGE)


def _minimum_tax(taxes: ChurchTaxes) -> ChurchTaxes:
    return ChurchTaxes(
        taxes_income_church=max_of(taxes.taxes_income_church, GE_MINIMUM_TAX),
        taxes_wealth_church=max_of(taxes.taxes_wealth_church, GE_MINIMUM_TAX),
    )


DEFAULT_RULE = ChurchRule(ChurchMode.SHARED, _simple_tax_bases)

CHURCH_RULES: Dict[Canton, ChurchRule] = {
    Canton.UR: ChurchRule(ChurchMode.COMPOSITE, _composite_bases),
    Canton.BL: ChurchRule(ChurchMode.PER_CONFESSION, _confession_bases),
    Canton.BS: ChurchRule(ChurchMode.SHARED, _canton_tax_bases),
    Canton.TI: ChurchRule(ChurchMode.SHARED, _canton_tax_bases),
    Canton.JU: ChurchRule(ChurchMode.SHARED, _canton_tax_bases),
    Canton.NE: ChurchRule(ChurchMode.SHARED, _canton_tax_bases, _flat_surcharge),
    Canton.VS: ChurchRule(ChurchMode.SHARED, _city_tax_bases),
    Canton.GE: ChurchRule(ChurchMode.SHARED, _simple_tax_bases, _minimum_tax),
}


def church_rule_for(canton_id: int) -> ChurchRule:
    """Rule for a canton; unknown ids use the simple-tax default."""
    return CHURCH_RULES.get(canton_id, DEFAULT_RULE)


def _split_across_persons(tax_input: TaxInput, base: CHF, rate_of, factors: TaxFactors, places: int) -> CHF:
    n = Decimal(len(tax_input.persons))
    return add_many(
        multiply_percent(base, chf(rate_of(person.confession, factors)) / n, places)
        for person in tax_input.persons
    )


def calculate_church_tax(
    tax_input: TaxInput,
    bases: ChurchTaxBases,
    factors: TaxFactors,
) -> ChurchTaxes:
    """Church tax on income and wealth.

    Per-person parts are rounded to 2 (income) and 5 (wealth) decimals before
    summing; callers round the sums to whole CHF.
    """
    rule = church_rule_for(tax_input.canton_id)
    logger.debug("Church tax for canton %s uses %s", tax_input.canton_id, rule.mode.value)

    if rule.mode == ChurchMode.COMPOSITE:
        income_base, _ = rule.bases(bases, Confession.NONE)
        taxes = ChurchTaxes(
            taxes_income_church=_split_across_persons(tax_input, income_base, church_income_rate, factors, 2),
            taxes_wealth_church=Decimal(0),
        )
    elif rule.mode == ChurchMode.PER_CONFESSION:
        income_parts = []
        wealth_parts = []
        for person in tax_input.persons:
            income_base, wealth_base = rule.bases(bases, person.confession)
            income_parts.append(multiply_percent(income_base, church_income_rate(person.confession, factors), 2))
            wealth_parts.append(multiply_percent(wealth_base, church_wealth_rate(person.confession, factors), 5))
        taxes = ChurchTaxes(
            taxes_income_church=add_many(income_parts),
            taxes_wealth_church=add_many(wealth_parts),
        )
    else:
        income_base, wealth_base = rule.bases(bases, Confession.NONE)
        taxes = ChurchTaxes(
            taxes_income_church=_split_across_persons(tax_input, income_base, church_income_rate, factors, 2),
            taxes_wealth_church=_split_across_persons(tax_input, wealth_base, church_wealth_rate, factors, 5),
        )

    return rule.adjust(taxes)
