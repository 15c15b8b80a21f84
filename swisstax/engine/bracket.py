
from decimal import Decimal
from typing import Any, Dict
from .models import CHF, TaxTarif, chf
from .money import round_five_centimes


def simple_tax_bracket(amount: CHF, tarif: TaxTarif) -> CHF:
    """
    Progressive percent-of-bracket-portion model.

    Row i covers (amount_i, amount_{i+1}] and taxes the portion of the
    taxable amount inside that span at percent_i. The last row is open-ended.
    """
    if amount <= 0 or not tarif.table:
        return Decimal(0)
    tax = Decimal(0)
    rows = tarif.table
    for idx, row in enumerate(rows):
        lower = chf(row.amount)
        if amount <= lower:
            break
        upper = chf(rows[idx + 1].amount) if idx + 1 < len(rows) else None
        top = amount if upper is None else min(amount, upper)
        rate = chf(row.percent or 0) / Decimal(100)
        tax += (top - lower) * rate
    return round_five_centimes(tax)


def bracket_info(amount: CHF | int, tarif: TaxTarif) -> Dict[str, Any]:
    """
    Lightweight inspector: the bracket the amount falls into.

    Brackets are (lower, upper]; below the first taxable lower bound the first
    bracket is reported.
    """
    i = chf(amount)
    rows = tarif.table
    for idx, row in enumerate(rows):
        lower = chf(row.amount)
        upper = chf(rows[idx + 1].amount) if idx + 1 < len(rows) else None
        if i > lower and (upper is None or i <= upper):
            return {"lower": float(lower), "upper": float(upper) if upper is not None else None,
                    "rate_percent": float(row.percent or 0)}
    if rows:
        r0 = rows[0]
        upper = float(rows[1].amount) if len(rows) > 1 else None
        return {"lower": float(r0.amount), "upper": upper, "rate_percent": float(r0.percent or 0)}
    return {"lower": 0.0, "upper": None, "rate_percent": 0.0}
