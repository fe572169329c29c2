from fastapi import FastAPI, Request, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, select, func
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from motorcover.db.session import Base, IS_SQLITE, engine, get_db
from motorcover.db import models
from motorcover.api.deps import back_office
from motorcover.api.responses import ok
from motorcover.api.routes_customers import router as customers_router
from motorcover.api.routes_vehicles import router as vehicles_router
from motorcover.api.routes_policies import router as policies_router
from motorcover.api.routes_premiums import router as premiums_router
from motorcover.api.routes_renewals import router as renewals_router
from motorcover.api.routes_claims import router as claims_router
from motorcover.api.routes_notifications import router as notifications_router
from motorcover.api.routes_events import router as events_router
from motorcover.services.access import Caller
from motorcover.services.claims import claim_stats
from motorcover.services.policies import policy_stats
from motorcover.utils.errors import ServiceError, field_error


def _ensure_runtime_migrations() -> None:
    """Best-effort upgrades for SQLite dev databases created by older builds.
    - Add reminder_sent_at to policy_renewals if missing.
    - Ensure the unique index behind coverage_slot.
    """
    if not IS_SQLITE:
        return
    cols = {c["name"] for c in inspect(engine).get_columns("policy_renewals")}
    with engine.begin() as conn:
        if "reminder_sent_at" not in cols:
            conn.exec_driver_sql("ALTER TABLE policy_renewals ADD COLUMN reminder_sent_at DATETIME")
        conn.exec_driver_sql(
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_premiums_coverage_slot ON premiums(coverage_slot)"
        )


def init_db() -> None:
    # Create tables if not exist (simple approach for local dev)
    Base.metadata.create_all(bind=engine)
    _ensure_runtime_migrations()


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        errors.append(field_error(".".join(loc) or "request", err.get("msg", "invalid"), err.get("input")))
    return errors


def create_app() -> FastAPI:
    app = FastAPI(title="Motorcover", version="0.1.0")
    init_db()

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        content = {
            "success": False,
            "message": "Validation failed",
            "kind": "ValidationError",
            "errors": _validation_errors(exc),
        }
        # input values may be arbitrary objects
        return JSONResponse(status_code=422, content=jsonable_encoder(content))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        kind = "NotFound" if exc.status_code == 404 else "HTTPError"
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail), "kind": kind},
        )

    # Routers
    app.include_router(customers_router)
    app.include_router(vehicles_router)
    app.include_router(policies_router)
    app.include_router(premiums_router)
    app.include_router(renewals_router)
    app.include_router(claims_router)
    app.include_router(notifications_router)
    app.include_router(events_router)

    @app.get("/api/dashboard")
    def dashboard(db: Session = Depends(get_db), caller: Caller = Depends(back_office)):
        counts = {
            "customers": db.execute(select(func.count(models.Customer.id))).scalar_one(),
            "vehicles": db.execute(select(func.count(models.Vehicle.id))).scalar_one(),
            "premiums": db.execute(select(func.count(models.Premium.id))).scalar_one(),
            "pending_renewals": db.execute(
                select(func.count(models.PolicyRenewal.id)).where(
                    models.PolicyRenewal.renewal_status == models.RenewalStatus.PENDING
                )
            ).scalar_one(),
            "events": db.execute(select(func.count(models.Event.id))).scalar_one(),
        }
        return ok("Dashboard statistics", {"counts": counts, "policies": policy_stats(db), "claims": claim_stats(db)})

    return app


app = create_app()

# To run locally:
# uvicorn motorcover.main:app --reload
