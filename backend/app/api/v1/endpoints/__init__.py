# API endpoints
from . import (
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
    images,
)

__all__ = [
    "auth",
    "oauth",
    "quotes",
    "vehicles",
    "vehicle_types",
    "services",
    "pois",
    "experiences",
    "provider_experiencias",
    "rates",
    "service_types",
    "audit",
    "images",
]
