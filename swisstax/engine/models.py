from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, getcontext
from enum import Enum, IntEnum
from typing import List, Optional, Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator

getcontext().prec = 28

CHF = Decimal


class Canton(IntEnum):
    """Cantonal ids as used by the ESTV data sets (alphabetical by abbreviation)."""
    AG = 1
    AI = 2
    AR = 3
    BE = 4
    BL = 5
    BS = 6
    FR = 7
    GE = 8
    GL = 9
    GR = 10
    JU = 11
    LU = 12
    NE = 13
    NW = 14
    OW = 15
    SG = 16
    SH = 17
    SO = 18
    SZ = 19
    TG = 20
    TI = 21
    UR = 22
    VD = 23
    VS = 24
    ZG = 25
    ZH = 26


class Confession(str, Enum):
    NONE = "none"
    CHRIST = "christ"
    ROMAN = "roman"
    PROTESTANT = "protestant"


class TableType(str, Enum):
    BRACKET = "bracket"
    FORMULA = "formula"


class Person(BaseModel):
    confession: Confession = Confession.NONE


class TaxInput(BaseModel):
    canton_id: int
    city_id: int
    year: int
    persons: List[Person]

    @field_validator("persons")
    @classmethod
    def _at_least_one_person(cls, v: List[Person]) -> List[Person]:
        if not v:
            raise ValueError("persons must not be empty")
        return v


class TaxFactors(BaseModel):
    """Rate factors in percent of the simple tax."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    income_rate_canton: float
    income_rate_city: float
    income_rate_christ: float = 0.0
    income_rate_roman: float = 0.0
    income_rate_protestant: float = 0.0
    wealth_rate_canton: float
    wealth_rate_city: float
    wealth_rate_christ: float = 0.0
    wealth_rate_roman: float = 0.0
    wealth_rate_protestant: float = 0.0


class TariffRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: float
    percent: Optional[float] = None
    formula: Optional[str] = None


class TaxTarif(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    table_type: TableType
    table: List[TariffRow] = Field(default_factory=list)


class TariffSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    income: TaxTarif
    income_married: Optional[TaxTarif] = None
    wealth: TaxTarif


class TaxLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    city_id: int
    name: str
    canton_id: int
    canton: str


class FactorsConfig(BaseModel):
    cantons: Dict[int, TaxFactors]
    cities: Dict[int, TaxFactors] = Field(default_factory=dict)


class TarifsConfig(BaseModel):
    cantons: Dict[int, TariffSet]


class LocationsConfig(BaseModel):
    locations: List[TaxLocation]


@dataclass(frozen=True)
class ChurchTaxBases:
    taxes_income_base: CHF
    taxes_income_canton: CHF
    taxes_income_city: CHF
    taxes_wealth_base: CHF
    taxes_wealth_canton: CHF
    taxes_wealth_city: CHF
    taxable_income_canton: CHF
    taxable_wealth_canton: CHF


@dataclass(frozen=True)
class LegislativeReduction:
    """Statutory linear reduction of the cantonal share for given tax years."""
    canton: Canton
    years: frozenset
    factor: CHF

    def applies(self, canton_id: int, year: int) -> bool:
        return canton_id == self.canton and year in self.years


@dataclass
class CantonCityTaxes:
    taxes_income_canton: CHF
    taxes_income_city: CHF
    taxes_income_church: CHF
    taxes_wealth_canton: CHF
    taxes_wealth_city: CHF
    taxes_wealth_church: CHF


@dataclass
class ChurchTaxes:
    taxes_income_church: CHF
    taxes_wealth_church: CHF


@dataclass
class TaxResult:
    canton_id: int
    city_id: int
    year: int
    taxable_income: CHF
    taxable_wealth: CHF
    income_simple: CHF
    wealth_simple: CHF
    taxes_income_canton: CHF
    taxes_income_city: CHF
    taxes_income_church: CHF
    taxes_wealth_canton: CHF
    taxes_wealth_city: CHF
    taxes_wealth_church: CHF
    total: CHF

# helpers

def chf(x: float | int | str | Decimal) -> CHF:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))
