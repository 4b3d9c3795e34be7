import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cache import ExpiringLRUCache
from .guardrails import DualWindowRateLimiter, RateLimitConfig
from .sampler import ResponseTimeSampler
from .scheduler import SingleFlightScheduler
from .schemas import (
    CacheStatusResponse,
    ClearCacheResponse,
    CreateUserRequest,
    CreateUserResponse,
    ErrorField,
    ErrorResponse,
    ServiceInfo,
    UserResponse,
)
from .settings import Settings, settings as default_settings
from .users import UserNotFoundError, UserRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    cache: ExpiringLRUCache
    rate_limiter: DualWindowRateLimiter
    scheduler: SingleFlightScheduler
    sampler: ResponseTimeSampler
    users: UserRepository

    @classmethod
    def build(cls, cfg: Settings) -> "Services":
        return cls(
            settings=cfg,
            cache=ExpiringLRUCache(
                cfg.cache_capacity,
                cfg.cache_ttl_seconds,
                sweep_interval_seconds=cfg.cache_sweep_interval_seconds,
            ),
            rate_limiter=DualWindowRateLimiter(
                RateLimitConfig(
                    max_requests=cfg.rate_limit_max_requests,
                    window_seconds=cfg.rate_limit_window_seconds,
                    burst_requests=cfg.rate_limit_burst_requests,
                    burst_window_seconds=cfg.rate_limit_burst_window_seconds,
                ),
                cleanup_interval_seconds=cfg.rate_limit_cleanup_interval_seconds,
            ),
            scheduler=SingleFlightScheduler(cfg.queue_max_concurrent),
            sampler=ResponseTimeSampler(cfg.response_time_samples),
            users=UserRepository(delay_seconds=cfg.db_delay_seconds),
        )

    def close(self) -> None:
        self.cache.destroy()
        self.rate_limiter.close()


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error_response(status_code: int, body: ErrorResponse, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


def _deny_message(decision) -> str:
    window = f"{decision.window_seconds:g}"
    if decision.limit == "burst":
        return f"Burst limit exceeded. Maximum {decision.max_requests} requests in {window} seconds."
    return f"Rate limit exceeded. Maximum {decision.max_requests} requests per {window} seconds."


def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or default_settings
    configure_logging(cfg.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = Services.build(cfg)
        logger.info(
            "Started: cache ttl=%ss capacity=%d, rate limit %d/%ss burst %d/%ss, max concurrent %d",
            cfg.cache_ttl_seconds, cfg.cache_capacity,
            cfg.rate_limit_max_requests, cfg.rate_limit_window_seconds,
            cfg.rate_limit_burst_requests, cfg.rate_limit_burst_window_seconds,
            cfg.queue_max_concurrent,
        )
        try:
            yield
        finally:
            app.state.services.close()
            logger.info("Shut down cleanly")

    app = FastAPI(title=cfg.app_name, version=cfg.app_version, lifespan=lifespan)

    @app.middleware("http")
    async def admission_control(request: Request, call_next):
        services: Services = request.app.state.services
        client_ip = request.client.host if request.client else "unknown"
        decision = services.rate_limiter.admit(client_ip)
        if not decision.allowed:
            logger.info("Rate limited %s (%s)", client_ip, decision.limit)
            body = ErrorResponse(
                error="Too many requests",
                message=_deny_message(decision),
                retry_after=decision.retry_after_seconds,
            )
            return _error_response(429, body, headers={"Retry-After": str(decision.retry_after_seconds)})
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, ErrorResponse):
            body = exc.detail
        elif exc.status_code == 404:
            body = ErrorResponse(error="Not found", message="The requested endpoint does not exist")
        else:
            body = ErrorResponse(error=str(exc.detail), message=str(exc.detail))
        return _error_response(exc.status_code, body, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            ErrorField(
                field=".".join(str(p) for p in err.get("loc", ())[1:]) or "body",
                message=err.get("msg", "Invalid value"),
            )
            for err in exc.errors()
        ]
        return _error_response(400, ErrorResponse(error="Invalid request", message="Validation failed", errors=errors))

    @app.get("/", response_model=ServiceInfo)
    def index():
        return {
            "message": "User Data API with Advanced Caching",
            "version": cfg.app_version,
            "endpoints": {
                "getUser": "GET /users/{id}",
                "createUser": "POST /users",
                "clearCache": "DELETE /cache",
                "cacheStatus": "GET /cache-status",
            },
        }

    @app.get("/users/{user_id}", response_model=UserResponse, responses=ERROR_RESPONSES)
    async def get_user(user_id: str, request: Request):
        start = time.perf_counter()
        services: Services = request.app.state.services
        if not (user_id.isascii() and user_id.isdigit()):
            raise HTTPException(
                status_code=400,
                detail=ErrorResponse(
                    error="Invalid user ID",
                    message="User ID must be a number",
                    errors=[ErrorField(field="user_id", message="User ID must be a number")],
                ),
            )
        uid = int(user_id)

        key = str(uid)
        cached = services.cache.get(key)
        if cached is not None:
            elapsed = _elapsed_ms(start)
            services.sampler.record(elapsed)
            return {"data": cached, "cached": True, "response_time": f"{elapsed}ms"}

        async def fetch():
            # populated by another request while this one was queued
            hit = services.cache.get(key)
            if hit is not None:
                return hit
            user = await services.users.fetch(uid)
            services.cache.set(key, user)
            return user

        try:
            user = await services.scheduler.run(key, fetch)
        except UserNotFoundError as exc:
            raise HTTPException(status_code=404, detail=ErrorResponse(error="User not found", message=str(exc)))
        except Exception as exc:
            logger.exception("User lookup failed for id=%s", uid)
            raise HTTPException(status_code=500, detail=ErrorResponse(error="Internal server error", message=str(exc)))

        elapsed = _elapsed_ms(start)
        services.sampler.record(elapsed)
        return {"data": user, "cached": False, "response_time": f"{elapsed}ms"}

    @app.post("/users", status_code=201, response_model=CreateUserResponse, responses={400: {"model": ErrorResponse}})
    def create_user(req: CreateUserRequest, request: Request):
        services: Services = request.app.state.services
        user = services.users.create(req.name, req.email)
        services.cache.set(str(user["id"]), user)
        return {"message": "User created successfully", "data": user}

    @app.delete("/cache", response_model=ClearCacheResponse)
    def clear_cache(request: Request):
        services: Services = request.app.state.services
        services.cache.clear()
        services.sampler.reset()
        return {
            "message": "Cache cleared successfully",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/cache-status", response_model=CacheStatusResponse)
    def cache_status(request: Request):
        services: Services = request.app.state.services
        stats = services.cache.stats()
        return {
            "cache_size": stats.size,
            "hits": stats.hits,
            "misses": stats.misses,
            "hit_rate": f"{stats.hit_rate * 100:.2f}%",
            "evictions": stats.evictions,
            "average_response_time": f"{services.sampler.average():.2f}ms",
            "queue": services.scheduler.stats(),
        }

    return app


app = create_app()
