from typing import List

from fastapi import APIRouter

from ..schemas import ServiceCatalogEntry

router = APIRouter(prefix="/services", tags=["Catalog"])

SERVICES = [
    ServiceCatalogEntry(id=1, name="Electrician", icon="⚡", description="Electrical repairs and installations"),
    ServiceCatalogEntry(id=2, name="Plumber", icon="🔧", description="Plumbing repairs and installations"),
    ServiceCatalogEntry(id=3, name="AC Technician", icon="❄️", description="AC repair and maintenance"),
    ServiceCatalogEntry(id=4, name="Carpenter", icon="🪚", description="Carpentry and woodwork"),
    ServiceCatalogEntry(id=5, name="Painter", icon="🎨", description="Interior and exterior painting"),
]


@router.get("", response_model=List[ServiceCatalogEntry])
async def list_services():
    return SERVICES
