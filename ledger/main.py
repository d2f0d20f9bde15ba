from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db.core import Base, engine
from .errors import LedgerError, ExternalServiceError, ConcurrencyError
from .logging_config import setup_logging, get_logger
from .routers.accounts import router as accounts_router
from .routers.budgets import router as budgets_router
from .routers.categories import router as categories_router
from .routers.dashboard import router as dashboard_router
from .routers.exchange_rates import router as exchange_rates_router
from .routers.recurring import router as recurring_router
from .routers.requests import router as requests_router
from .routers.sharing import router as sharing_router
from .routers.splits import router as splits_router
from .routers.transactions import router as transactions_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(lifespan=lifespan)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if isinstance(exc, (ExternalServiceError, ConcurrencyError)):
        # Upstream and race failures are logged in full but reported generically
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        message = "The request could not be completed, please try again"
        if isinstance(exc, ConcurrencyError):
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "error": {"general": [message]}})

    return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "error": exc.to_dict()})


app.include_router(accounts_router)
app.include_router(categories_router)
app.include_router(transactions_router)
app.include_router(recurring_router)
app.include_router(budgets_router)
app.include_router(requests_router)
app.include_router(sharing_router)
app.include_router(splits_router)
app.include_router(exchange_rates_router)
app.include_router(dashboard_router)


@app.get("/")
def read_root():
    return "Server is running."
