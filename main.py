import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api.actions import router as actions_router
from api.loans import router as loans_router
from api.reports import router as reports_router
from services.errors import LoanWorkflowError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    log.info("%s started", settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Equipment loan lifecycle, returns, extensions and fines API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoanWorkflowError)
async def loan_workflow_error_handler(request: Request, exc: LoanWorkflowError):
    content = {"message": exc.message}
    if exc.retryable:
        content["retryable"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


# Static /stats and /fines routes must be matched before /{loan_id}
app.include_router(reports_router)
app.include_router(loans_router)
app.include_router(actions_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
