"""Health check API routes."""

from fastapi import APIRouter, HTTPException

from lib.wattbox.api.models import ServiceStatusResponse

router = APIRouter(prefix="/health", tags=["health"])

# Store service instance (set by app)
_service = None


def set_service(service) -> None:
    """Set the WattBox service instance.

    Parameters
    ----------
    service
        WattBoxService instance
    """
    global _service
    _service = service


@router.get("", response_model=dict)
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "wattbox"}


@router.get("/status", response_model=ServiceStatusResponse)
async def get_status() -> ServiceStatusResponse:
    """Get service status.

    Returns
    -------
    ServiceStatusResponse
        Service status
    """
    if not _service:
        raise HTTPException(status_code=503, detail="Service not available")

    status = await _service.get_status()
    return ServiceStatusResponse(**status)
