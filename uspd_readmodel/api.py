"""HTTP surface over the aggregation service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import __version__
from .exceptions import (
    EngineError,
    GatewayUnavailable,
    InvalidChain,
    PriceUnavailable,
)
from .services import AggregationService

logger = logging.getLogger(__name__)

router = APIRouter()

ChainIdQuery = Annotated[int | None, Query(alias="chainId")]


def get_service(request: Request) -> AggregationService:
    return request.app.state.service


def resolve_chain_id(request: Request, chain_id: ChainIdQuery = None) -> int:
    return chain_id if chain_id is not None else request.app.state.default_chain_id


def _status_for(exc: EngineError) -> int:
    if isinstance(exc, InvalidChain):
        return 400
    if isinstance(exc, (GatewayUnavailable, PriceUnavailable)):
        return 503
    return 500


async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = _status_for(exc)
    logger.error("%s %s failed (%d): %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"error": str(exc)})


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/v1/system/mintable-capacity")
async def mintable_capacity(
    chain_id: int = Depends(resolve_chain_id),
    svc: AggregationService = Depends(get_service),
) -> dict[str, Any]:
    result = await svc.get_mintable_capacity(chain_id)
    return result.to_payload()


@router.get("/api/v1/system/ratio")
async def system_ratio(
    chain_id: int = Depends(resolve_chain_id),
    svc: AggregationService = Depends(get_service),
) -> dict[str, Any]:
    result = await svc.get_system_ratio(chain_id)
    return result.to_payload()


@router.get("/api/v1/positions/{position_id}/ratio", response_model=None)
async def position_ratio(
    position_id: str,
    chain_id: int = Depends(resolve_chain_id),
    svc: AggregationService = Depends(get_service),
) -> dict[str, Any] | JSONResponse:
    if not position_id.isdigit():
        return JSONResponse(status_code=400, content={"error": "Invalid position ID"})
    result = await svc.get_position_ratio(chain_id, int(position_id))
    return result.to_payload()


@router.get("/api/stabilizer/metadata/{token_id}", response_model=None)
async def stabilizer_metadata(
    token_id: str,
    chain_id: int = Depends(resolve_chain_id),
    svc: AggregationService = Depends(get_service),
) -> dict[str, Any] | JSONResponse:
    if not token_id.isdigit() or int(token_id) < 1:
        return JSONResponse(status_code=400, content={"error": "Invalid token ID"})
    metadata = await svc.get_stabilizer_metadata(chain_id, int(token_id))
    return metadata.to_payload()


def create_app(service: AggregationService, default_chain_id: int) -> FastAPI:
    """Build the FastAPI app around one long-lived service instance."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await service.close()

    app = FastAPI(
        title="USPD Read Model API",
        description="Mintable capacity and collateralization read models.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.default_chain_id = default_chain_id
    app.add_exception_handler(EngineError, _engine_error_handler)
    app.include_router(router)
    return app
