from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.rate_limit import SlidingWindowRateLimiter
from core.logger import logger
from db.mongo import get_settings
from db.usage import MongoUsageRecorder, get_usage_recorder
from orchestrator.catalog import get_catalog
from orchestrator.dispatcher import Dispatcher
from orchestrator.errors import ClassifiedError
from orchestrator.schemas import (
    ApiEnvelope,
    ConversationRequest,
    CreativeRequest,
    SentimentRequest,
)
from orchestrator.tasks import analyze_sentiment, converse, generate_creative
from providers.huggingface import HuggingFaceProvider


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("hf-relay starting up (usage backend: {})", get_settings().usage_backend)
    yield
    usage = app.state.usage
    if isinstance(usage, MongoUsageRecorder):
        await usage.drain()
    logger.info("hf-relay shutting down")


app = FastAPI(title="hf-relay", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_settings = get_settings()
app.state.usage = get_usage_recorder()
app.state.rate_limiter = SlidingWindowRateLimiter(
    _settings.rate_limit_max_requests, _settings.rate_limit_window_s
)
app.state.dispatcher = Dispatcher(HuggingFaceProvider(), usage=app.state.usage)


# -----------------------------
# DEPENDENCIES
# -----------------------------
def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


async def require_token(authorization: Optional[str] = Header(None)):
    """
    Optional service token check (Authorization: Bearer <API_TOKEN>).
    Disabled when api_token is empty.
    """
    settings = get_settings()
    if not settings.api_token:
        return

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Token required")

    token = authorization.split(" ", 1)[1]
    if token != settings.api_token:
        raise HTTPException(status_code=403, detail="Invalid token")


def current_user(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    return x_user_id or "anon"


async def rate_limit(
    request: Request,
    user_id: str = Depends(current_user),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    key = user_id if user_id != "anon" else (request.client.host if request.client else "anon")
    retry_after = limiter.hit(key)
    if retry_after is not None:
        logger.warning("Rate limit exceeded: key={} path={} retry_after={}s", key, request.url.path, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


def _require(value: Optional[str], message: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=message)
    return value


# -----------------------------
# ERROR HANDLING & ACCESS LOG
# -----------------------------
@app.exception_handler(ClassifiedError)
async def classified_error_handler(request: Request, exc: ClassifiedError):
    logger.error("{} on {}: {}", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        # drop the "body" prefix, callers only know their own field names
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        problems.append(f"{'.'.join(loc)}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.warning("Validation failed on {}: {}", request.url.path, message)
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": message},
    )


@app.middleware("http")
async def record_access(request: Request, call_next):
    t0 = perf_counter()
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception:
        logger.exception("Unhandled error on {} {}", request.method, request.url.path)
        response = JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )
        status_code = 500

    doc = {
        "route": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "timing_ms": round((perf_counter() - t0) * 1000.0, 2),
        "user_id": request.headers.get("X-User-Id"),
        "ip": request.client.host if request.client else None,
    }
    try:
        request.app.state.usage.record_access(doc)
    except Exception as e:
        logger.warning("Access log failed: {!r}", e)
    return response


# -----------------------------
# ROUTES
# -----------------------------
_guards = [Depends(require_token), Depends(rate_limit)]


@app.post("/huggingface/creative", response_model=ApiEnvelope, dependencies=_guards)
async def creative_endpoint(
    body: CreativeRequest,
    user_id: str = Depends(current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    prompt = _require(body.prompt, "Prompt is required")
    api_key = _require(body.api_key, "API key is required")

    result = await generate_creative(
        dispatcher,
        user_id,
        api_key,
        prompt,
        {
            "model": body.model,
            "max_length": body.max_length,
            "temperature": body.temperature,
        },
    )
    return {"success": True, "result": result.model_dump()}


@app.post("/huggingface/sentiment", response_model=ApiEnvelope, dependencies=_guards)
async def sentiment_endpoint(
    body: SentimentRequest,
    user_id: str = Depends(current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    text = _require(body.prompt, "Text is required")
    api_key = _require(body.api_key, "API key is required")

    result = await analyze_sentiment(dispatcher, user_id, api_key, text, {"model": body.model})
    return {"success": True, "result": result.model_dump()}


@app.post("/huggingface/conversation", response_model=ApiEnvelope, dependencies=_guards)
async def conversation_endpoint(
    body: ConversationRequest,
    user_id: str = Depends(current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    message = _require(body.message, "Message is required")
    api_key = _require(body.api_key, "API key is required")

    result = await converse(
        dispatcher,
        user_id,
        api_key,
        message,
        body.model_dump(exclude={"message", "api_key"}),
    )
    return {"success": True, "result": result.model_dump()}


@app.get("/huggingface/models/{task}", response_model=ApiEnvelope, dependencies=[Depends(require_token)])
async def models_endpoint(task: str):
    return {
        "success": True,
        "result": {"task": task, "models": list(get_catalog().recommended_models(task))},
    }


@app.get("/healthz")
async def healthz():
    return {
        "status": "ok",
        "tasks": sorted(get_catalog().tasks),
    }
