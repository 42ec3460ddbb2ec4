"""
FastAPI layer exposing uniform-background removal.

Endpoints:
 - GET /, GET /health
 - POST /process       (JSON: imageUrl or imageData, outputFormat)
 - POST /process-form  (multipart: image, format)

Handlers are plain `def` functions so FastAPI runs the CPU-bound pixel work
in its thread pool instead of on the event loop.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__, config
from .errors import AppError, InternalError, InvalidInputError, error_response, success_response
from .pipeline import process_image_bytes
from .postprocessing import image_to_base64, normalize_output_format
from .preprocessing import decode_base64_image, download_image

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Background Cutout Service", version=__version__)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


class ProcessImageRequest(BaseModel):
    imageUrl: Optional[str] = None
    imageData: Optional[str] = None  # base64, optionally a data: URL
    outputFormat: Optional[str] = None


@app.exception_handler(AppError)
async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=error_response(str(exc)))


def _cutout_response(image_bytes: bytes, output_format: Optional[str]) -> dict:
    fmt = normalize_output_format(output_format, default=settings.default_output_format)
    try:
        rgba = process_image_bytes(image_bytes)
        encoded = image_to_base64(rgba, fmt)
    except AppError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Background removal failed: %s", exc)
        raise InternalError(str(exc)) from exc
    return success_response({"processedImage": encoded, "format": fmt})


def _health() -> dict:
    return success_response({"status": "ok", "service": "background-cutout", "version": __version__})


@app.get("/")
def root():
    return _health()


@app.get("/health")
def health():
    return _health()


@app.post("/process")
def process_image(body: ProcessImageRequest):
    logger.info("Received JSON image processing request")
    if body.imageUrl is not None and body.imageData is not None:
        raise InvalidInputError("provide only one of imageUrl or imageData")
    if body.imageUrl is not None:
        image_bytes = download_image(body.imageUrl, settings.request_timeout_seconds)
    elif body.imageData is not None:
        if not body.imageData.strip():
            raise InvalidInputError("imageData is empty")
        image_bytes = decode_base64_image(body.imageData)
    else:
        raise InvalidInputError("provide imageUrl or imageData")
    return _cutout_response(image_bytes, body.outputFormat)


@app.post("/process-form")
def process_image_form(
    image: Optional[UploadFile] = File(None),
    format: Optional[str] = Form(None),  # noqa: A002
):
    logger.info("Received form image processing request")
    if image is None:
        raise InvalidInputError("image file not found")
    image_bytes = image.file.read()
    if not image_bytes:
        raise InvalidInputError("image file is empty")
    return _cutout_response(image_bytes, format)
