"""Health check endpoints."""

from fastapi import APIRouter, Depends

from blinks_relay.api.deps import get_container
from blinks_relay.container import RelayContainer

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "blinks-relay"}


@router.get("/health/detailed")
async def detailed_health(container: RelayContainer = Depends(get_container)):
    """Detailed health check with configuration info."""
    loop = container.event_loop
    return {
        "status": "healthy",
        "service": "blinks-relay",
        "version": "0.1.0",
        "fee_payer": container.signer.public_key if container.signer else None,
        "event_ingestion": {
            "state": loop.state.value if loop else "disabled",
            "cursor": loop.cursor.current_ledger() if loop and loop.cursor.is_initialized else None,
        },
        "config": container.settings.get_safe_dict(),
    }
