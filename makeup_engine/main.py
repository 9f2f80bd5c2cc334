from __future__ import annotations

import base64
import json
import logging
from typing import Any, Callable, List

import cv2
import numpy as np
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import get_settings
from .errors import DegenerateGeometryError, InvalidInputError, MakeupError, UnsupportedFormatError
from .makeup import apply_blush, apply_brow, apply_eye, apply_eye_lash, apply_eye_shadow, apply_lip
from .models import ColorList, LandmarkSet, MakeupResponse
from .shapes import BlushShape

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Makeup Engine", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> dict[str, Any]:
    return {"status": "ok"}


async def _read_upload(upload: UploadFile) -> np.ndarray:
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=400, detail=f"Empty payload for '{upload.filename}'")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"'{upload.filename}' exceeds {settings.max_upload_bytes} bytes")
    return np.frombuffer(data, np.uint8)


async def _load_image(upload: UploadFile) -> np.ndarray:
    """Decode an upload into an RGBA uint8 array."""
    image = cv2.imdecode(await _read_upload(upload), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise HTTPException(status_code=415, detail="Unsupported image format")
    if image.dtype != np.uint8:
        raise HTTPException(status_code=415, detail=f"Only 8-bit images are supported, got {image.dtype}")
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)


async def _load_mask(upload: UploadFile) -> np.ndarray:
    mask = cv2.imdecode(await _read_upload(upload), cv2.IMREAD_GRAYSCALE)
    if mask is None:
        raise HTTPException(status_code=415, detail="Unsupported mask format")
    return mask


def _parse_landmarks(raw: str) -> np.ndarray:
    try:
        return LandmarkSet.model_validate_json(raw).to_array()
    except ValidationError as exc:
        logger.error(f"Invalid landmarks: {exc}")
        raise HTTPException(status_code=400, detail=f"Invalid landmarks: {exc.errors()}") from exc


def _encode_image(image: np.ndarray) -> MakeupResponse:
    bgra = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    success, buffer = cv2.imencode(".png", bgra)
    if not success:
        raise ValueError("Failed to encode image")
    encoded = base64.b64encode(buffer.tobytes()).decode("ascii")
    h, w = image.shape[:2]
    return MakeupResponse(image=f"data:image/png;base64,{encoded}", width=w, height=h)


def _run_effect(name: str, effect: Callable[[], np.ndarray]) -> MakeupResponse:
    try:
        return _encode_image(effect())
    except InvalidInputError as exc:
        logger.error(f"Invalid input for {name}: {exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UnsupportedFormatError as exc:
        logger.error(f"Unsupported format for {name}: {exc}")
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except DegenerateGeometryError as exc:
        logger.error(f"Degenerate geometry for {name}: {exc}")
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except MakeupError as exc:
        logger.error(f"Error applying {name}: {exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Error applying {name}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to apply {name}: {str(exc)}") from exc


@app.post("/api/makeup/brow", response_model=MakeupResponse)
async def brow(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    mask: UploadFile = File(...),
    color: str = Form(...),
    amount: float = Form(1.0),
    offsetY: float = Form(0.0),
) -> MakeupResponse:
    """Replace the eyebrows with a brow template mask."""
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    brow_mask = await _load_mask(mask)
    return _run_effect(
        "brow",
        lambda: apply_brow(
            img,
            points,
            brow_mask,
            color,
            amount,
            offsetY,
            margin=settings.brow_margin,
            mask_tolerance=settings.brow_mask_tolerance,
            patch_size=settings.inpaint_patch_size,
        ),
    )


@app.post("/api/makeup/eye", response_model=MakeupResponse)
async def eye(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    cosmetic: UploadFile = File(...),
    amount: float = Form(1.0),
) -> MakeupResponse:
    """Deposit a right-eye cosmetic texture on both eyes."""
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    texture = await _load_image(cosmetic)
    return _run_effect("eye", lambda: apply_eye(img, points, texture, amount))


@app.post("/api/makeup/eyelash", response_model=MakeupResponse)
async def eyelash(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    mask: UploadFile = File(...),
    color: str = Form(...),
    amount: float = Form(1.0),
) -> MakeupResponse:
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    lash_mask = await _load_mask(mask)
    return _run_effect("eyelash", lambda: apply_eye_lash(img, points, lash_mask, color, amount))


@app.post("/api/makeup/eyeshadow", response_model=MakeupResponse)
async def eyeshadow(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    masks: List[UploadFile] = File(...),
    colors: str = Form(...),
    amount: float = Form(1.0),
) -> MakeupResponse:
    """Fuse layered shadow masks and deposit them on both eyes.

    ``colors`` is a JSON list of hex colors, one per uploaded mask.
    """
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    try:
        palette = ColorList.model_validate({"colors": json.loads(colors)}).parsed()
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error(f"Invalid eyeshadow colors: {exc}")
        raise HTTPException(status_code=400, detail=f"Invalid colors: {exc}") from exc
    layers = [await _load_mask(m) for m in masks]
    return _run_effect("eyeshadow", lambda: apply_eye_shadow(img, points, layers, palette, amount))


@app.post("/api/makeup/blush", response_model=MakeupResponse)
async def blush(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    shape: BlushShape = Form(BlushShape.DEFAULT),
    color: str = Form(...),
    amount: float = Form(1.0),
) -> MakeupResponse:
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    return _run_effect(
        "blush",
        lambda: apply_blush(img, points, shape, color, amount, smooth_level=settings.blush_smooth_level),
    )


@app.post("/api/makeup/lip", response_model=MakeupResponse)
async def lip(
    image: UploadFile = File(...),
    landmarks: str = Form(...),
    color: str = Form(...),
    amount: float = Form(1.0),
) -> MakeupResponse:
    img = await _load_image(image)
    points = _parse_landmarks(landmarks)
    return _run_effect("lip", lambda: apply_lip(img, points, color, amount))
