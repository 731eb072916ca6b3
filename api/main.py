import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from seo_engine.exceptions import SEOEngineError
from .middleware import BodySizeLimitMiddleware, RateLimitMiddleware, RequestLoggingMiddleware
from .routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="SEO Integrity Engine",
    description=(
        "Audits a corpus of site pages for content, metadata, internal-linking and "
        "performance problems, repairs what can be repaired and returns a scored report."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)
# middleware stack: the last one added is outermost and runs first on request
app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(SEOEngineError)
async def engine_error_handler(request: Request, exc: SEOEngineError):
    logging.getLogger(__name__).warning("Engine error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "code": "engine_error"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger(__name__).error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred.", "code": "internal_error"},
    )


app.include_router(router)
