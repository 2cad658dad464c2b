"""
Image conversion routes for the GinkoHub Tools API
"""

import io
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from PIL import Image
from starlette.concurrency import run_in_threadpool

from ginkohub.config import get_store
from ginkohub.logger import get_logger
from ginkohub.models import ImageMetadataModel
from ginkohub.store import KeyValueStore
from ginkohub.utils import track_usage

router = APIRouter()
logger = get_logger("routes.images")

# requested format -> (Pillow format, mime type)
OUTPUT_FORMATS = {
    "png": ("PNG", "image/png"),
    "jpg": ("JPEG", "image/jpeg"),
    "jpeg": ("JPEG", "image/jpeg"),
    "bmp": ("BMP", "image/bmp"),
    "webp": ("WEBP", "image/webp"),
    "gif": ("GIF", "image/gif"),
    "tiff": ("TIFF", "image/tiff"),
}

# formats that cannot carry an alpha channel
_NO_ALPHA = {"JPEG", "BMP"}


def convert_image(data: bytes, pil_format: str) -> bytes:
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        if pil_format in _NO_ALPHA and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        buf = io.BytesIO()
        image.save(buf, format=pil_format)
        return buf.getvalue()


def read_metadata(data: bytes) -> dict:
    with Image.open(io.BytesIO(data)) as image:
        return {
            "width": image.width,
            "height": image.height,
            "format": image.format,
            "mime": Image.MIME.get(image.format) if image.format else None,
            "mode": image.mode,
        }


@router.post("/images/convert", tags=["Images"])
async def convert(
    background_tasks: BackgroundTasks,
    image: Optional[UploadFile] = File(None, description="Image to convert"),
    format: str = Form("png", description="png, jpg, jpeg, bmp, webp, gif or tiff"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Convert an image to another format

    - **image**: Uploaded image file
    - **format**: Target format
    """
    if image is None:
        raise HTTPException(status_code=400, detail="No image")

    target = (format or "png").lower()
    if target not in OUTPUT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{format}'")
    pil_format, mime = OUTPUT_FORMATS[target]

    data = await image.read()
    try:
        converted = await run_in_threadpool(convert_image, data, pil_format)
    except Exception as e:
        logger.error(f"Image conversion to {target} failed: {e}")
        return JSONResponse(status_code=500, content={"error": "Conversion failed", "details": str(e)})

    background_tasks.add_task(track_usage, store, "image_convert")
    return Response(content=converted, media_type=mime)


@router.post("/images/metadata", response_model=ImageMetadataModel, tags=["Images"])
async def metadata(
    background_tasks: BackgroundTasks,
    image: Optional[UploadFile] = File(None, description="Image to inspect"),
    store: KeyValueStore = Depends(get_store),
):
    """Get image dimensions, format and colour mode"""
    if image is None:
        raise HTTPException(status_code=400, detail="No image")

    data = await image.read()
    try:
        info = await run_in_threadpool(read_metadata, data)
    except Exception as e:
        logger.error(f"Image metadata read failed: {e}")
        raise HTTPException(status_code=500, detail="Metadata read failed")

    background_tasks.add_task(track_usage, store, "image_metadata")
    return info
