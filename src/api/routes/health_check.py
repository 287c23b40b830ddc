from fastapi import APIRouter, Depends, status

from src.app.services.connection_registry import ConnectionRegistry
from src.depends import get_registry

router = APIRouter(tags=["Health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health(registry: ConnectionRegistry = Depends(get_registry)):
    return {"status": "ok", "connections": await registry.count()}
