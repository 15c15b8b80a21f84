from .tarif import simple_tax, income_tarif_for
from .formula import evaluate_formula_tarif
from .bracket import simple_tax_bracket, bracket_info
from .factors import calculate_taxes_canton_and_city, apply_factors, LEGISLATIVE_REDUCTIONS
from .church import calculate_church_tax, church_rule_for
from .calculator import calculate_taxes
from .models import (
    Canton, Confession, Person, TaxInput, TaxFactors, TaxTarif, TariffRow, TariffSet,
    ChurchTaxBases, TaxResult
)
