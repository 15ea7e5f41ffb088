import base64
from pathlib import Path
from urllib.parse import unquote, urlparse

from rikka_ai.schemas.message import ImagePart


class ImageEncodeError(ValueError):
    pass


def encode_image_base64(part: ImagePart) -> str:
    """Read a ``file://`` image and return it as a ``data:`` URI.

    Raises:
        ImageEncodeError: unsupported URL scheme or missing file
    """
    if not part.url.startswith("file://"):
        raise ImageEncodeError(f"Unsupported URL format: {part.url}")

    path = Path(unquote(urlparse(part.url).path))
    if not path.is_file():
        raise ImageEncodeError(f"File does not exist: {part.url}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise ImageEncodeError(f"Failed to read {part.url}: {e}") from e

    encoded = base64.b64encode(data).decode("ascii")
    return f"data:image/*;base64,{encoded}"
