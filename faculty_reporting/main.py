import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from faculty_reporting.core import config
from faculty_reporting.core.exceptions import ReportingError
from faculty_reporting.database import Base, engine, ensure_reporting_schema
from faculty_reporting.models import assignment, directory, rating, report, user  # noqa: F401
from faculty_reporting.routes import (
    assignment_routes,
    auth_routes,
    directory_routes,
    rating_routes,
    report_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Faculty Reporting API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(ReportingError)
async def reporting_error_handler(request: Request, exc: ReportingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': describe_validation_errors(exc.errors())},
    )


def describe_validation_errors(errors) -> str:
    messages = []
    for error in errors:
        message = str(error.get('msg', 'Invalid value'))
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        location = [str(part) for part in error.get('loc', ()) if part != 'body']
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return '; '.join(messages) or 'Invalid request.'


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_reporting_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Faculty Reporting API Running'}


app.include_router(auth_routes.router)
app.include_router(directory_routes.router)
app.include_router(report_routes.router)
app.include_router(assignment_routes.router)
app.include_router(rating_routes.router)
