"""HTTP API for the comparables estimation."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tasador_rural.errors import InvalidQueryError, SearchUnavailableError
from tasador_rural.pipeline import ComparablesService, build_service
from tasador_rural.query import build_query

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Error searching comparables, please try again later"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def create_app(service: ComparablesService | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        service: Pipeline to use. If omitted, one is built from settings on
                 startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        app.state.service = build_service() if owned else service
        try:
            yield
        finally:
            if owned:
                await app.state.service.close()

    app = FastAPI(title="Tasador Rural - Comparables", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.exception_handler(InvalidQueryError)
    async def invalid_query(request: Request, exc: InvalidQueryError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(SearchUnavailableError)
    async def search_unavailable(request: Request, exc: SearchUnavailableError):
        logger.error("Listings search unavailable: %s (last error: %s)", exc, exc.last_error)
        return JSONResponse(status_code=500, content={"error": SEARCH_FAILED_MESSAGE})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error in %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/comparables")
    async def comparables(request: Request):
        try:
            payload = await request.json()
        except ValueError as e:
            raise InvalidQueryError("Request body must be valid JSON") from e

        query = build_query(payload)

        # The Exception handler runs outside CORSMiddleware; answer the 500 here
        try:
            result = await request.app.state.service.estimate(query)
        except (InvalidQueryError, SearchUnavailableError):
            raise
        except Exception as e:
            logger.exception("Error in comparables endpoint: %s", e)
            return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

        return result.model_dump(mode="json")

    return app
