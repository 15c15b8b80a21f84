"""
HTTP surface of swisstax.

GET /api/locations returns the municipalities of the nearest tax year that
has data (current year, then earlier years), or of an explicit ?year=.
"""

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException

from .engine.models import TaxLocation
from .io.loader import CONFIG_ROOT
from .io.provider import TaxDataProvider
from .version import SWISSTAX_VERSION

logger = logging.getLogger(__name__)

app = FastAPI(
    title="swisstax",
    description="Swiss cantonal, municipal and church tax data",
    version=SWISSTAX_VERSION,
)

_provider = TaxDataProvider(CONFIG_ROOT)


def get_provider() -> TaxDataProvider:
    return _provider


@app.get("/api/locations", response_model=List[TaxLocation])
async def get_locations(
    year: Optional[int] = None,
    provider: TaxDataProvider = Depends(get_provider),
):
    """Municipalities with BFS number and canton."""
    try:
        return await provider.get_tax_locations(year)
    except FileNotFoundError as e:
        logger.error("Locations unavailable: %s", e)
        raise HTTPException(status_code=404, detail=str(e))
