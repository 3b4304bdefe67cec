import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from donaro.api import routers
from donaro.core.config import get_settings
from donaro.core.exceptions import DonaroError
from donaro.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Donaro API",
    root_path=get_settings().API_ROOT_PATH
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain(s)
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DonaroError)
async def donaro_error_handler(request: Request, exc: DonaroError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{request.method} {request.url.path} failed: {exc.message}",
        extra={"code": exc.code, "status_code": exc.status_code}
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())

@app.get("/")
def read_root():
    return {"message": "Welcome to the Donaro API"}


app.include_router(routers.router)

handler = Mangum(app)
