import asyncio
import logging
import os
import time
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, model_serializer

from .core.config import Config, JSONConfig, UploadConfig
from .core.errors import ToolkitError
from .core.files import download_static_file
from .core.http import push_json_to_remote
from .core.middleware import global_exception_handler, log_requests, toolkit_error_handler
from .core.text import SlugError, slugify
from .services.json_exchange import error_json, write_json, read_json
from .services.uploads import upload_files, upload_one_file

logger = logging.getLogger(__name__)


class RequestPayload(BaseModel):
    action: str = ""
    message: str = ""


class ResponsePayload(BaseModel):
    message: str
    status_code: Optional[int] = None

    @model_serializer(mode="wrap")
    def omit_empty_status(self, handler):
        out = handler(self)
        if out.get("status_code") is None:
            out.pop("status_code", None)
        return out


class SlugRequest(BaseModel):
    text: str


def _uploaded_lines(files) -> str:
    return "".join(
        f"uploaded {item.original_name} to the uploads folder, renamed to {item.new_name}\n"
        for item in files
    )


# Initialize FastAPI
app = FastAPI(title="Web Toolkit Demo API")

# CORS setup
ALLOWED_ORIGINS = Config.allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

@app.middleware("http")
async def _log_requests(request, call_next):
    return await log_requests(request, call_next)

@app.exception_handler(ToolkitError)
async def _toolkit_error_handler(request, exc):
    return await toolkit_error_handler(request, exc)

@app.exception_handler(Exception)
async def _global_exception_handler(request, exc):
    return await global_exception_handler(request, exc)


@app.post("/upload")
async def upload(request: Request):
    """Store every uploaded file under UPLOAD_DIR with a random name."""
    files = await upload_files(request, Config.UPLOAD_DIR, UploadConfig.from_env())
    return PlainTextResponse(_uploaded_lines(files))


@app.post("/upload-one")
async def upload_one(request: Request):
    item = await upload_one_file(request, Config.UPLOAD_DIR, UploadConfig.from_env())
    return PlainTextResponse(_uploaded_lines([item]))


@app.post("/receive-post")
async def receive_post(request: Request):
    """Decode a RequestPayload and answer with a fixed payload."""
    await read_json(request, RequestPayload, JSONConfig.from_env())
    return write_json(200, ResponsePayload(message="hallo!", status_code=200))


@app.post("/remote-service")
async def remote_service(request: Request):
    """Relay the decoded payload to REMOTE_SERVICE_URL and report its status."""
    payload = await read_json(request, RequestPayload, JSONConfig.from_env())
    _, status_code = await asyncio.to_thread(push_json_to_remote, Config.REMOTE_SERVICE_URL, payload)
    return write_json(200, ResponsePayload(message="hallo!", status_code=status_code))


@app.post("/simulated-service")
async def simulated_service():
    return write_json(200, ResponsePayload(message="okay", status_code=200))


@app.get("/download/{filename}")
async def download(filename: str):
    """Serve DOWNLOAD_DIR/<filename> as an attachment."""
    stem, ext = os.path.splitext(filename)
    try:
        safe_name = slugify(stem) + ext.lower()
    except SlugError:
        raise HTTPException(status_code=400, detail="Invalid filename")
    if safe_name != filename:
        raise HTTPException(status_code=400, detail="Invalid filename")
    return download_static_file(os.path.join(Config.DOWNLOAD_DIR, safe_name), safe_name)


@app.post("/slugify")
async def make_slug(request: Request):
    body = await read_json(request, SlugRequest, JSONConfig.from_env())
    try:
        slug = slugify(body.text)
    except SlugError as e:
        return error_json(e)
    return write_json(200, {"slug": slug})


@app.get("/health")
async def health_check():
    """Basic health and configuration checks for the API."""
    health_start_time = time.time()

    try:
        Config.validate()
        health_duration = time.time() - health_start_time

        return {
            "status": "healthy",
            "service": "web-toolkit-demo",
            "environment": Config.ENVIRONMENT,
            "timestamp": datetime.now().isoformat(),
            "response_time_ms": round(health_duration * 1000, 2)
        }
    except ValueError as e:
        health_duration = time.time() - health_start_time
        logger.error(f"Health check failed: {str(e)} - Duration: {health_duration:.1f}s")

        return {
            "status": "unhealthy",
            "service": "web-toolkit-demo",
            "timestamp": datetime.now().isoformat(),
            "error": str(e),
            "response_time_ms": round(health_duration * 1000, 2)
        }
