"""FastAPI dependencies: hand out the components built at startup.

Usage in a router:
    service: Annotated[BankIntegrationService, Depends(get_service)]
"""

from fastapi import Request

from src.bi_common.resilience import ResilienceRegistry
from src.bi_integration.application.service import BankIntegrationService


def get_service(request: Request) -> BankIntegrationService:
    return request.app.state.components.service


def get_resilience(request: Request) -> ResilienceRegistry:
    return request.app.state.components.resilience


def get_location_base_url(request: Request) -> str:
    return request.app.state.components.location_base_url
