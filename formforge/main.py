import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from formforge.config import config
from formforge.database import database
from formforge.errors import FormForgeError, ValidationFailedError
from formforge.guards import RateLimiter, SubmissionGuard
from formforge.logging_conf import configure_logging
from formforge.routers.form import router as form_router
from formforge.routers.public import router as public_router
from formforge.routers.user import router as user_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # connect database
    await database.connect()
    yield
    # disconnect database
    await database.disconnect()


app = FastAPI(
    title="FormForge API",
    description="Versioned forms and response capture",
    lifespan=lifespan,
)

app.state.rate_limiter = RateLimiter()
app.state.submission_guard = SubmissionGuard()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user_router, prefix="/api/user", tags=["User"])
app.include_router(form_router, prefix="/api/form", tags=["Form"])
app.include_router(public_router, prefix="/api/public/forms", tags=["Public"])


@app.exception_handler(FormForgeError)
async def formforge_exception_handler(request: Request, exc: FormForgeError):
    logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra={"path": request.url.path})
    content = {"detail": exc.message}
    if isinstance(exc, ValidationFailedError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)

