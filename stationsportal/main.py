# stationsportal/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc
from stationsportal.utils.upsert import storage_message
from stationsportal.config import settings
from stationsportal.database import engine, Base
from stationsportal.core.exceptions import DomainError, AuthenticationError, ValidationError
from stationsportal.models.user import User
from stationsportal.models.organization import OrganizationalUnit, Station, UserStation
from stationsportal.models.annual_cycle import AnnualCycleItem, AnnualTaskCompletion
from stationsportal.models.task import Task, TaskComment
from stationsportal.models.salary_review import SalaryReviewCycle, Employee, SalaryReview
from stationsportal.models.budget import VoCycleBudget, StationBudgetAllocation
from stationsportal.routers import auth, admin, annual_cycle, task, salary_review

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Stationsportal - Ambulance Station Administration", version="1.0")

# Include Routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(annual_cycle.router)
app.include_router(task.router)
app.include_router(salary_review.router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"error": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(sa_exc.SQLAlchemyError)
async def storage_error_handler(request: Request, exc: sa_exc.SQLAlchemyError):
    message = storage_message(exc)
    logger.error("%s %s failed: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=500, content={"error": message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = None
    if errors and errors[0].get("loc"):
        field = str(errors[0]["loc"][-1])
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "field": field})


# Create DB Tables (for local runs; use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    if not settings.AUTO_CREATE_TABLES:
        return
    # ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Welcome to Stationsportal"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("stationsportal.main:app", host="0.0.0.0", port=8000, reload=True)
