"""FastAPI application setup for the chat search service."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from .auth import HeaderIdentityResolver, IdentityResolver, require_user_id
from .config import Settings
from .errors import InvalidArgumentError, StoreUnavailableError, UnauthenticatedError
from .observability import MetricsRecorder
from .params import parse_popular_terms_request, parse_search_request, parse_suggestion_request
from .search import SearchService
from .search_log import SearchLogger, SearchLogStore
from .store import ChatStore, ChatStoreProtocol

logger = logging.getLogger(__name__)


_LOGGING_CONFIGURED = False


def _ensure_logging() -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    package_logger = logging.getLogger("chatsearch")
    uvicorn_logger = logging.getLogger("uvicorn.error")

    handlers = list(uvicorn_logger.handlers)
    if handlers:
        package_logger.handlers = []
        for handler in handlers:
            package_logger.addHandler(handler)
    else:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        package_logger.addHandler(handler)

    if package_logger.level == logging.NOTSET or package_logger.level > logging.INFO:
        package_logger.setLevel(logging.INFO)
    package_logger.propagate = False
    _LOGGING_CONFIGURED = True


class ApplicationState:
    """Container for runtime dependencies used by the FastAPI app."""

    def __init__(
        self,
        *,
        settings: Settings,
        chat_store: ChatStoreProtocol,
        search_service: SearchService,
        search_logger: SearchLogger,
        identity_resolver: IdentityResolver,
        metrics: MetricsRecorder | None,
    ) -> None:
        self.settings = settings
        self.chat_store = chat_store
        self.search_service = search_service
        self.search_logger = search_logger
        self.identity_resolver = identity_resolver
        self.metrics = metrics


def create_app(
    *,
    settings: Settings | None = None,
    chat_store: ChatStoreProtocol | None = None,
    search_service: SearchService | None = None,
    search_logger: SearchLogger | None = None,
    identity_resolver: IdentityResolver | None = None,
    metrics: MetricsRecorder | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    _ensure_logging()

    settings = settings or Settings.from_env()
    metrics = metrics or settings.build_metrics_recorder()
    chat_store = chat_store or ChatStore(settings.chat_db_file())
    search_service = search_service or SearchService(
        chat_store,
        fuzzy_floor=settings.fuzzy_similarity_floor,
        fuzzy_discount=settings.fuzzy_score_discount,
        fuzzy_pool_size=settings.fuzzy_pool_size,
        candidate_limit=settings.search_candidate_limit,
        metrics=metrics,
    )
    search_logger = search_logger or SearchLogger(
        SearchLogStore(settings.search_log_path()),
        enabled=settings.search_logging_enabled,
        retention_days=settings.search_log_retention_days,
        metrics=metrics,
    )
    identity_resolver = identity_resolver or HeaderIdentityResolver(settings.auth_user_header)
    logger.info(
        "app.start settings_loaded data_dir=%s fuzzy_floor=%s fuzzy_discount=%s",
        settings.data_dir,
        settings.fuzzy_similarity_floor,
        settings.fuzzy_score_discount,
    )

    app = FastAPI()
    app.state.services = ApplicationState(
        settings=settings,
        chat_store=chat_store,
        search_service=search_service,
        search_logger=search_logger,
        identity_resolver=identity_resolver,
        metrics=metrics,
    )

    @app.exception_handler(InvalidArgumentError)
    async def _invalid_argument(request: Request, exc: InvalidArgumentError) -> JSONResponse:
        logger.warning("request.invalid path=%s errors=%s", request.url.path, exc)
        label = "Invalid request body" if request.method == "POST" else "Invalid query parameters"
        return JSONResponse(
            {"error": label, "details": [item.to_dict() for item in exc.errors]},
            status_code=400,
        )

    @app.exception_handler(UnauthenticatedError)
    async def _unauthenticated(request: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    @app.exception_handler(StoreUnavailableError)
    async def _store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.exception("request.store_unavailable path=%s", request.url.path, exc_info=exc)
        return JSONResponse(
            {"error": "Search is temporarily unavailable", "retryable": True},
            status_code=503,
        )

    def get_state(request: Request) -> ApplicationState:
        return request.app.state.services

    def get_settings_dependency(request: Request) -> Settings:
        return get_state(request).settings

    def get_search_service(request: Request) -> SearchService:
        return get_state(request).search_service

    def get_search_logger(request: Request) -> SearchLogger:
        return get_state(request).search_logger

    def get_metrics(request: Request) -> MetricsRecorder | None:
        return get_state(request).metrics

    def get_user_id(request: Request) -> str:
        return require_user_id(get_state(request).identity_resolver, request)

    async def _run_search(
        params: Mapping[str, Any],
        *,
        user_id: str,
        settings: Settings,
        service: SearchService,
        search_logger: SearchLogger,
    ) -> JSONResponse:
        query = parse_search_request(
            params,
            owner_id=user_id,
            default_limit=settings.search_default_limit,
            max_limit=settings.search_max_limit,
        )
        start = time.perf_counter()
        response = await service.search(query)
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "search.request owner=%s type=%s limit=%s offset=%s results=%s",
            user_id,
            query.type.value,
            query.limit,
            query.offset,
            response.total,
        )
        search_logger.log_search(
            owner_id=user_id,
            query=query.text,
            search_type=query.type.value,
            result_count=response.total,
            duration_ms=duration_ms,
        )
        return JSONResponse(response.to_dict())

    @app.get("/api/search", response_class=JSONResponse)
    async def search_get(
        request: Request,
        user_id: str = Depends(get_user_id),
        settings: Settings = Depends(get_settings_dependency),
        service: SearchService = Depends(get_search_service),
        search_logger: SearchLogger = Depends(get_search_logger),
    ) -> JSONResponse:
        return await _run_search(
            dict(request.query_params),
            user_id=user_id,
            settings=settings,
            service=service,
            search_logger=search_logger,
        )

    @app.post("/api/search", response_class=JSONResponse)
    async def search_post(
        request: Request,
        user_id: str = Depends(get_user_id),
        settings: Settings = Depends(get_settings_dependency),
        service: SearchService = Depends(get_search_service),
        search_logger: SearchLogger = Depends(get_search_logger),
    ) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}
        return await _run_search(
            payload,
            user_id=user_id,
            settings=settings,
            service=service,
            search_logger=search_logger,
        )

    @app.get("/api/search/suggestions", response_class=JSONResponse)
    async def search_suggestions(
        request: Request,
        user_id: str = Depends(get_user_id),
        settings: Settings = Depends(get_settings_dependency),
        service: SearchService = Depends(get_search_service),
    ) -> JSONResponse:
        params = parse_suggestion_request(
            request.query_params,
            default_limit=settings.suggestion_default_limit,
            max_limit=settings.suggestion_max_limit,
        )
        suggestions = await service.suggest(user_id, params.query, params.limit)
        return JSONResponse({"suggestions": suggestions, "query": params.query})

    @app.get("/api/search/popular", response_class=JSONResponse)
    async def popular_terms(
        request: Request,
        user_id: str = Depends(get_user_id),
        search_logger: SearchLogger = Depends(get_search_logger),
    ) -> JSONResponse:
        params = parse_popular_terms_request(request.query_params)
        terms = search_logger.popular_terms(user_id, limit=params.limit, days=params.days)
        return JSONResponse({"terms": terms})

    @app.get("/healthz", response_class=JSONResponse)
    async def healthz() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    @app.get("/metrics")
    async def metrics_endpoint(metrics: MetricsRecorder | None = Depends(get_metrics)) -> Response:
        if metrics is None or not metrics.prometheus_enabled:
            raise HTTPException(status_code=404, detail="Metrics export disabled")
        return Response(content=metrics.render_prometheus(), media_type=metrics.prometheus_content_type)

    return app


__all__ = ["create_app", "ApplicationState"]
