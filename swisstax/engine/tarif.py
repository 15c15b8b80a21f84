from decimal import Decimal
from .models import CHF, TableType, TaxTarif, TariffSet
from .bracket import simple_tax_bracket
from .formula import evaluate_formula_tarif

_EVALUATORS = {
    TableType.BRACKET: simple_tax_bracket,
    TableType.FORMULA: evaluate_formula_tarif,
}


def simple_tax(amount: CHF, tarif: TaxTarif) -> CHF:
    """Simple tax (einfache Steuer) of `amount` under `tarif`."""
    if amount < 0:
        return Decimal(0)
    return _EVALUATORS[tarif.table_type](amount, tarif)


def income_tarif_for(tarifs: TariffSet, person_count: int) -> TaxTarif:
    """Households of more than one person use the married tariff when the canton has one."""
    if person_count > 1 and tarifs.income_married is not None:
        return tarifs.income_married
    return tarifs.income
