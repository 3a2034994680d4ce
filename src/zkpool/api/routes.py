"""REST API endpoints for the shielded pool."""

import logging
import threading
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from zkpool import __version__
from zkpool.config import get_settings
from zkpool.core.pool import ShieldedPool
from zkpool.models.schemas import (
    PoolStateResponse,
    RootStatusResponse,
    TransactRequest,
    TransactResponse,
)
from zkpool.storage.database import SqlHost, get_db_manager
from zkpool.utils.encoding import bytes_to_hex, hex_to_bytes
from zkpool.exceptions import (
    AccessError,
    DoubleSpendError,
    PoolNotInitializedError,
    VerifierInternalError,
    ZKPoolException,
)

logger = logging.getLogger(__name__)

_pool: Optional[ShieldedPool] = None
_pool_lock = threading.Lock()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    version: str = __version__


def get_pool() -> ShieldedPool:
    """
    Get or create the pool served by this process, backed by the configured database.

    The accumulator lives in process memory and is written back to the
    database after every transaction, so exactly one worker process may
    serve a given database. Run uvicorn with a single worker.
    """
    global _pool
    with _pool_lock:
        if _pool is None:
            settings = get_settings()
            host = SqlHost(get_db_manager(settings.database_url), authorities=[settings.authority])
            pool = ShieldedPool(
                authority=settings.authority,
                host=host,
                tree_height=settings.tree_height,
                root_history_size=settings.root_history_size,
            )
            if not pool.is_initialized:
                pool.initialize_pool()
            _pool = pool
        return _pool


def reset_pool() -> None:
    """Forget the served pool (for testing)."""
    global _pool
    _pool = None


def error_status(exc: ZKPoolException) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, DoubleSpendError):
        return 409
    if isinstance(exc, VerifierInternalError):
        return 500
    if isinstance(exc, AccessError):
        return 403
    if isinstance(exc, PoolNotInitializedError):
        return 503
    return 400


# Initialize FastAPI
app = FastAPI(
    title="ZK Shielded Pool API",
    description="Groth16-verified shielded pool transactions",
    version=__version__,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert Pydantic validation errors (422) to 400 Bad Request."""
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        error_messages.append(f"{field}: {error['msg']}")

    return JSONResponse(
        status_code=400,
        content={"detail": "; ".join(error_messages), "code": "ValidationError"},
    )


@app.exception_handler(ZKPoolException)
async def pool_exception_handler(request: Request, exc: ZKPoolException):
    """Map domain errors to HTTP responses carrying their stable code."""
    status = error_status(exc)
    if status >= 500:
        logger.error("Verifier fault on %s: %s", request.url.path, exc.code)
    return JSONResponse(status_code=status, content={"detail": str(exc), "code": exc.code})


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Liveness probe."""
    return HealthResponse(status="operational")


@app.get("/state", response_model=PoolStateResponse, tags=["System"])
def get_state(pool: ShieldedPool = Depends(get_pool)):
    """Current accumulator state."""
    return PoolStateResponse(**pool.get_pool_state().to_dict())


@app.get("/roots/{root_hex}", response_model=RootStatusResponse, tags=["System"])
def get_root_status(root_hex: str, pool: ShieldedPool = Depends(get_pool)):
    """Whether a root is inside the accepted history window."""
    try:
        root = hex_to_bytes(root_hex, expected_length=32)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"detail": str(e), "code": "ValidationError"})
    return RootStatusResponse(root=bytes_to_hex(root), known=pool.is_known_root(root))


@app.post("/transact", response_model=TransactResponse, tags=["Transact"])
def transact(request: TransactRequest, pool: ShieldedPool = Depends(get_pool)):
    """Verify and apply one shielded transaction."""
    proof = request.proof.to_proof()
    ext_data = request.ext_data.to_ext_data()

    # One transaction at a time per pool
    with _pool_lock:
        receipt = pool.transact(
            proof,
            ext_data,
            authority=request.authority,
            signer=request.signer,
        )
    return TransactResponse(**receipt.to_dict())


@app.get("/", tags=["System"])
async def root():
    """API documentation root."""
    return {
        "name": "ZK Shielded Pool API",
        "version": __version__,
        "endpoints": {
            "health": "/health",
            "state": "/state",
            "root": "GET /roots/{root_hex}",
            "transact": "POST /transact",
        },
    }


if __name__ == "__main__":
    import uvicorn

    from zkpool.config import configure_logging

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000, workers=1)
