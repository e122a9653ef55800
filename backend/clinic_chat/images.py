"""Image intake: downscale and re-encode uploads as inline JPEG data URLs."""
import base64
import io
import logging

from PIL import Image, UnidentifiedImageError

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 400
DEFAULT_QUALITY = 60


def process_image(data: bytes, max_width: int = DEFAULT_MAX_WIDTH, quality: int = DEFAULT_QUALITY) -> str:
    """Return ``data`` as a ``data:image/jpeg;base64,...`` URL.

    Images wider than ``max_width`` are scaled down preserving the aspect
    ratio; narrower images keep their size.

    Raises:
        InvalidInputError: If ``data`` is not a readable image.
    """
    if not data:
        raise InvalidInputError("Image upload is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.LANCZOS)
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.warning(f"[Images] Rejected upload of {len(data)} bytes: {e}")
        raise InvalidInputError("Uploaded file is not a readable image") from e

    buffer = io.BytesIO()
    rgb.save(buffer, format="JPEG", quality=quality)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    logger.info(f"[Images] Encoded {rgb.width}x{rgb.height} JPEG ({buffer.tell()} bytes)")
    return f"data:image/jpeg;base64,{encoded}"
