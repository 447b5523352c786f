"""HTTP trigger endpoints for the ingestion pipeline.

Routes:
    POST /api/cron/fetch-articles      Scheduler trigger (Bearer CRON_SECRET)
    POST /api/admin/manual-fetch       Operator trigger (Bearer ADMIN_TOKEN)
    POST /api/admin/articles/delete    Soft delete (Bearer ADMIN_TOKEN)

Run endpoints answer with:
    {"success": bool, "message": str,
     "data": {"articlesFound", "articlesProcessed", "articlesFailed", "errors"}}
and status 200 when the run succeeded, 500 when it failed or its
bookkeeping raised.
"""

import hmac
import logging
from typing import Annotated, Callable

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Config
from models.job import RunResult, RunType
from pipeline import Pipeline

logger = logging.getLogger(__name__)

ADMIN_ACTOR = "admin-api"
CRON_ACTOR = "cron"


class FetchRequest(BaseModel):
    """Body of the run trigger endpoints. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    count: int | None = Field(default=None, ge=1, description="Target number of candidates")
    is_manual: bool = Field(default=False, alias="isManual")


class DeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    article_ids: list[str] = Field(alias="articleIds", min_length=1)


def _bearer_token(authorization: str | None) -> str:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return ""


def require_token(setting: str) -> Callable[..., None]:
    """Dependency factory checking the Bearer token against a config field.

    An unset secret rejects every request.
    """

    def check(
        request: Request,
        authorization: Annotated[str | None, Header()] = None,
    ) -> None:
        expected = getattr(request.app.state.config, setting)
        supplied = _bearer_token(authorization)
        if not expected or not hmac.compare_digest(supplied.encode(), expected.encode()):
            logger.warning("Unauthorized request | path=%s", request.url.path)
            raise HTTPException(status_code=401, detail="Unauthorized")

    return check


def get_pipeline(request: Request) -> Pipeline:
    """Dependency to get the shared pipeline."""
    return request.app.state.pipeline


async def _run(
    pipeline: Pipeline,
    count: int,
    run_type: RunType,
    requested_by: str,
    admin_log: bool = False,
) -> JSONResponse:
    try:
        if admin_log:
            pipeline.record_manual_fetch(count, requested_by)
        result = await pipeline.run_once(count=count, run_type=run_type, requested_by=requested_by)
    except Exception as e:
        logger.error("Triggered run failed | type=%s error=%s", type(e).__name__, e, exc_info=True)
        result = RunResult(success=False, errors=[str(e)])

    message = "Articles processed successfully" if result.success else "Processing completed with errors"
    return JSONResponse(
        status_code=200 if result.success else 500,
        content={"success": result.success, "message": message, "data": result.to_response()},
    )


router = APIRouter(prefix="/api", tags=["ingestion"])


@router.post("/cron/fetch-articles", dependencies=[Depends(require_token("cron_secret"))])
async def cron_fetch(
    request: Request,
    pipeline: Annotated[Pipeline, Depends(get_pipeline)],
    body: FetchRequest | None = None,
):
    """Scheduled (or scheduler-issued manual) ingestion run. Job ledger only."""
    body = body or FetchRequest()
    config: Config = request.app.state.config
    count = body.count or config.default_fetch_count
    run_type = RunType.MANUAL if body.is_manual else RunType.SCHEDULED
    return await _run(pipeline, count, run_type, CRON_ACTOR)


@router.post("/admin/manual-fetch", dependencies=[Depends(require_token("admin_token"))])
async def manual_fetch(
    request: Request,
    pipeline: Annotated[Pipeline, Depends(get_pipeline)],
    body: FetchRequest | None = None,
):
    """Operator-triggered ingestion run."""
    body = body or FetchRequest()
    config: Config = request.app.state.config
    count = body.count or config.manual_fetch_count
    return await _run(pipeline, count, RunType.MANUAL, ADMIN_ACTOR, admin_log=True)


@router.post("/admin/articles/delete", dependencies=[Depends(require_token("admin_token"))])
async def delete_articles(
    body: DeleteRequest,
    pipeline: Annotated[Pipeline, Depends(get_pipeline)],
):
    """Soft delete articles. Their ids stay claimed."""
    try:
        deleted = pipeline.delete_articles(body.article_ids, requested_by=ADMIN_ACTOR)
    except Exception as e:
        logger.error("Delete failed | error=%s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to delete articles"})

    return {
        "success": True,
        "message": f"Successfully deleted {len(body.article_ids)} articles",
        "deletedCount": deleted,
    }


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected request body | path=%s errors=%s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def create_app(config: Config, pipeline: Pipeline) -> FastAPI:
    """Build the trigger API around an existing pipeline.

    Args:
        config: Application configuration (secrets and default counts)
        pipeline: Pipeline used by every request
    """
    app = FastAPI(
        title="newsbrief",
        description="Trigger endpoints for article ingestion and summarization",
        version="0.1.0",
    )
    app.state.config = config
    app.state.pipeline = pipeline
    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    return app


def serve(config: Config, host: str | None = None, port: int | None = None) -> None:
    """Run the trigger API until interrupted."""
    import uvicorn

    pipeline = Pipeline(config)
    try:
        uvicorn.run(
            create_app(config, pipeline),
            host=host or config.server_host,
            port=port or config.server_port,
            log_config=None,
        )
    finally:
        pipeline.close()
