from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Liveness plus which external collaborators are configured."""
    configured = {
        "rpc": settings.has_rpc_url,
        "signer": settings.has_signer_service,
        "store": settings.store_backend.lower(),
    }
    return {
        "status": "healthy" if settings.has_rpc_url and settings.has_signer_service else "degraded",
        "chain_id": settings.chain_id,
        "configured": configured,
    }
