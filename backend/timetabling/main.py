from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetabling.api.routes import bookings, conflicts, failures, health, scheduling
from timetabling.core.config import get_settings
from timetabling.core.exceptions import AppError
from timetabling.core.logging import setup_logging

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(environment=settings.environment)
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(scheduling.router, prefix=f"{settings.api_prefix}/scheduling", tags=["scheduling"])
app.include_router(bookings.router, prefix=f"{settings.api_prefix}/bookings", tags=["bookings"])
app.include_router(conflicts.router, prefix=f"{settings.api_prefix}/conflicts", tags=["conflicts"])
app.include_router(failures.router, prefix=f"{settings.api_prefix}/scheduling-failures", tags=["scheduling-failures"])
