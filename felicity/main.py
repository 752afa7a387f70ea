import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from felicity.core.config import LOG_LEVEL
from felicity.database.db import Base, engine
from felicity.models import capacity, events, registrations, users  # noqa: F401
from felicity.routes import events as event_routes
from felicity.routes import organizer, reports
from felicity.routes import registrations as registration_routes
from felicity.services.errors import ErrorKind, RegistrationError

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.ALREADY_REGISTERED: 409,
    ErrorKind.CAPACITY_FULL: 409,
    ErrorKind.OUT_OF_STOCK: 409,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.ALREADY_SCANNED: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.BUSY: 503,
    ErrorKind.TICKET_ISSUANCE_FAILED: 500,
}

app = FastAPI(title="Felicity registrations")

# Configure CORS
origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistrationError)
def registration_error_handler(request: Request, exc: RegistrationError):
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, 400),
        content={
            "success": False,
            "error": exc.kind.value,
            "detail": exc.message,
            "details": jsonable_details(exc.details),
        },
    )


@app.exception_handler(SQLAlchemyError)
def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "detail": "Internal error"})


def jsonable_details(details: dict) -> dict:
    return {key: value.isoformat() if hasattr(value, "isoformat") else value for key, value in details.items()}


# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)

# Include the routers
app.include_router(event_routes.router)
app.include_router(registration_routes.router)
app.include_router(organizer.router)
app.include_router(reports.router)
