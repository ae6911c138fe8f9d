from fastapi import APIRouter
from app.api.v1.endpoints import (
    auth,
    oauth,
    quotes,
    vehicles,
    vehicle_types,
    services,
    pois,
    experiences,
    provider_experiencias,
    rates,
    service_types,
    audit,
    users,
)
from app.api.v1.endpoints.images import create_image_router
from app.core.config import settings
from app.services.image_service import experience_image_service, vehicle_image_service

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancers"""
    return {"status": "healthy", "service": settings.APP_NAME}


# Auth
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(oauth.router, prefix="/auth/oauth", tags=["OAuth"])

# Users
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Quotes
api_router.include_router(quotes.router, prefix="/quotes", tags=["Quotes"])

# Fleet
api_router.include_router(vehicle_types.router, prefix="/vehicle-types", tags=["Vehicle Types"])
api_router.include_router(create_image_router(vehicle_image_service, "vehicle"), prefix="/vehicles", tags=["Vehicles"])
api_router.include_router(vehicles.router, prefix="/vehicles", tags=["Vehicles"])

# Catalog
api_router.include_router(rates.router, prefix="/rates", tags=["Rates"])
api_router.include_router(service_types.router, prefix="/service-types", tags=["Service Types"])
api_router.include_router(pois.router, prefix="/pois", tags=["POIs"])
api_router.include_router(services.router, prefix="/services", tags=["Services"])

# Experiences and providers
api_router.include_router(
    create_image_router(experience_image_service, "experience"), prefix="/experiences", tags=["Experiences"]
)
api_router.include_router(experiences.router, prefix="/experiences", tags=["Experiences"])
api_router.include_router(provider_experiencias.router, tags=["Provider Experiencias"])

# Audit
api_router.include_router(audit.router, prefix="/audit", tags=["Audit"])
