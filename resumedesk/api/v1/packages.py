# resumedesk/api/v1/packages.py
from typing import List

from fastapi import APIRouter, Depends, Request

from resumedesk.api.v1.schemas import GeoOut, PackageOut
from resumedesk.services.catalog import PackageCatalog, get_catalog
from resumedesk.services.gateways.registry import infer_gateway

router = APIRouter()


def client_ip(request: Request):
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("/packages", response_model=List[PackageOut])
async def list_packages_default(catalog: PackageCatalog = Depends(get_catalog)):
    return catalog.list_packages("USD")


@router.get("/packages/{currency}", response_model=List[PackageOut])
async def list_packages(currency: str, catalog: PackageCatalog = Depends(get_catalog)):
    return catalog.list_packages(currency)


@router.get("/geo", response_model=GeoOut)
async def geo(request: Request):
    # set by the CDN in front of the app; advisory only
    country = (request.headers.get("cf-ipcountry") or request.headers.get("x-country-code") or "US").upper()
    return GeoOut(
        country_code=country,
        inferred_gateway=infer_gateway(country).value.lower(),
        ip=client_ip(request),
    )
