"""Data-URI image helpers.

Every image in a project (character references, generated frames) is stored as
a self-describing ``data:<mime>;base64,<payload>`` string so bundles carry no
external asset references.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

from lyriclens.agents.base import INVALID_REFERENCE_IMAGES, AgentExecutionError


logger = logging.getLogger(__name__)


# Pillow format name -> mime type accepted by the image APIs
SUPPORTED_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


@dataclass(frozen=True)
class DecodedImage:
    """Raw bytes and mime type extracted from a data URI."""
    mime_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return self.mime_type.split("/")[-1].replace("jpeg", "jpg")


def parse_data_uri(data_uri: str) -> DecodedImage:
    """Split a base64 data URI into mime type and bytes.

    Raises:
        ValueError: If the string is not a base64 data URI
    """
    header, sep, payload = data_uri.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("not a base64 data URI")
    mime_type = header[len("data:"):].split(";")[0] or "application/octet-stream"
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 image data: {e}")
    return DecodedImage(mime_type=mime_type, data=data)


def to_data_uri(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def validate_reference_image(data_uri: str) -> str:
    """Check that ``data_uri`` holds a decodable image in a supported format.

    Returns the URI with its mime type normalized to what Pillow detected.

    Raises:
        AgentExecutionError: INVALID_REFERENCE_IMAGES for anything else
    """
    try:
        decoded = parse_data_uri(data_uri)
        with Image.open(io.BytesIO(decoded.data)) as img:
            img.verify()
            image_format = img.format
    except (ValueError, UnidentifiedImageError, OSError) as e:
        raise AgentExecutionError(
            INVALID_REFERENCE_IMAGES,
            f"Reference image could not be read: {e}",
        )

    mime_type = SUPPORTED_FORMATS.get(image_format)
    if mime_type is None:
        raise AgentExecutionError(
            INVALID_REFERENCE_IMAGES,
            f"Unsupported reference image format: {image_format}",
            {"supported": sorted(SUPPORTED_FORMATS)}
        )
    if mime_type != decoded.mime_type:
        logger.info(f"Reference image declared {decoded.mime_type}, detected {mime_type}")
        return to_data_uri(decoded.data, mime_type)
    return data_uri


def image_file_to_data_uri(path: Union[str, Path]) -> str:
    """Read an image file from disk and return a validated data URI."""
    data = Path(path).read_bytes()
    return validate_reference_image(to_data_uri(data, "application/octet-stream"))
