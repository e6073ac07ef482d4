# billify/infrastructure/images/logo.py
import asyncio
import base64
import binascii
import io
import logging
import os
import re
from typing import List, Optional, Tuple
from urllib.parse import quote_plus, urlparse

import aiofiles
import aiohttp
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from billify.config.settings import settings
from billify.infrastructure.cloudinary.upload_file import is_storage_url

# --- CONFIG ---
REQUEST_TIMEOUT = 30
SUPPORTED_FORMATS = ("png", "jpg", "jpeg", "gif", "webp", "svg+xml")
LARGE_IMAGE_BYTES = 100_000
HUGE_IMAGE_BYTES = 1_000_000

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [LOGO] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
_BASE64 = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_MULTIPART_MARKERS = ("boundary=", "Content-Type: image/", "Content-Disposition:", "\r\n\r\n")


def placeholder(text: str) -> str:
    return f"https://placehold.co/120x60?text={quote_plus(text)}"


def is_placeholder(src: Optional[str]) -> bool:
    return not src or "placehold.co" in src


def is_http_url(value: str) -> bool:
    try:
        return urlparse(value).scheme in ("http", "https")
    except ValueError:
        return False


def is_base64_data_url(value: str) -> bool:
    return value.startswith("data:image/") and "base64," in value


def is_multipart_data(value: str) -> bool:
    return any(marker in value for marker in _MULTIPART_MARKERS)


def normalize_data_url(data_url: str) -> str:
    match = _DATA_URL.match(data_url)
    if not match:
        return data_url
    mime_type, payload = match.groups()
    if payload and _BASE64.match(payload):
        return f"data:{mime_type};base64,{payload}"
    return placeholder("Invalid Image")


def extract_base64_from_multipart(data: str) -> Optional[str]:
    inline = re.search(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+", data)
    if inline:
        return normalize_data_url(inline.group(0))

    raw = re.search(r"Content-Type:\s*image/([^\r\n;]+)[\r\n]+([A-Za-z0-9+/=\r\n]+)", data, re.IGNORECASE)
    if raw:
        image_type = raw.group(1).strip()
        payload = re.sub(r"\s", "", raw.group(2))
        if _BASE64.match(payload):
            return normalize_data_url(f"data:image/{image_type};base64,{payload}")
    return None


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """``data:<mime>;base64,<payload>`` -> (mime, raw bytes)."""
    match = _DATA_URL.match(data_url)
    if not match:
        raise ValueError("Not a base64 data URL")
    mime_type, payload = match.groups()
    return mime_type, base64.b64decode(payload, validate=True)


def bytes_to_data_url(data: bytes, content_type: Optional[str] = None) -> str:
    if not content_type or not content_type.startswith("image/"):
        content_type = "image/png"
        try:
            with Image.open(io.BytesIO(data)) as img:
                if img.format:
                    content_type = Image.MIME.get(img.format, content_type)
        except (UnidentifiedImageError, OSError):
            pass
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


class ImageValidationResult(BaseModel):
    is_valid: bool = False
    format: Optional[str] = None
    size: int = 0
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


def validate_base64_image(data_url: str) -> ImageValidationResult:
    result = ImageValidationResult(size=len(data_url))

    if not data_url.startswith("data:image/"):
        result.issues.append("Not a valid data URL - missing data:image/ prefix")
        result.recommendations.append("Ensure the image starts with data:image/[format];base64,")
        return result

    match = re.match(r"^data:image/([^;]+);base64,(.+)$", data_url, re.DOTALL)
    if not match:
        result.issues.append("Invalid data URL format")
        result.recommendations.append("Expected format: data:image/[format];base64,[data]")
        return result

    fmt, payload = match.groups()
    result.format = fmt
    if fmt.lower() not in SUPPORTED_FORMATS:
        result.issues.append(f"Unsupported format: {fmt}")
        result.recommendations.append(f"Use one of: {', '.join(SUPPORTED_FORMATS)}")

    if not _BASE64.match(payload):
        result.issues.append("Invalid base64 characters detected")
        result.recommendations.append("Base64 string contains invalid characters")
        return result

    if len(payload) % 4 != 0:
        result.issues.append("Base64 length is not divisible by 4")
        result.recommendations.append("Base64 string length should be divisible by 4")

    if len(data_url) > LARGE_IMAGE_BYTES:
        result.issues.append("Image data is very large (>100KB)")
        result.recommendations.append("Consider using external URL or compressing image")
    if len(data_url) > HUGE_IMAGE_BYTES:
        result.issues.append("Image data is extremely large (>1MB) - likely to cause PDF issues")
        result.recommendations.append("Strongly recommend using external URL instead")

    # Size and format findings are warnings only
    result.is_valid = not [
        issue for issue in result.issues
        if "very large" not in issue and "Unsupported format" not in issue
    ]
    if result.is_valid:
        result.recommendations.append("Image data appears valid for PDF generation")
    return result


def _decodes_as_image(data: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False


async def probe_image(src: str, timeout: float = settings.IMAGE_PROBE_TIMEOUT_SECONDS) -> bool:
    """True when ``src`` loads as an image within ``timeout`` seconds."""
    async def _load() -> Optional[bytes]:
        if is_base64_data_url(src):
            match = _DATA_URL.match(src)
            return base64.b64decode(match.group(2)) if match else None
        if is_http_url(src):
            async with aiohttp.ClientSession() as session:
                async with session.get(src) as response:
                    response.raise_for_status()
                    return await response.read()
        if os.path.isfile(src):
            async with aiofiles.open(src, "rb") as f:
                return await f.read()
        return None

    try:
        data = await asyncio.wait_for(_load(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Image probe timed out after {timeout}s: '{src[:70]}'")
        return False
    except (aiohttp.ClientError, OSError, binascii.Error, ValueError) as e:
        logger.warning(f"Image probe failed for '{src[:70]}': {type(e).__name__}")
        return False
    return bool(data) and _decodes_as_image(data)


class LogoResolver:
    """Turns a stored logo reference into a source embeddable in rendered HTML.

    Never raises: every failure degrades to a placeholder image URL. Only bytes
    that decode as an image are inlined, and local paths are read only from
    inside ``static_dir``.
    """

    def __init__(self, storage=None, request_timeout: int = REQUEST_TIMEOUT,
                 static_dir: Optional[str] = settings.LOGO_STATIC_DIR):
        self.storage = storage
        self.request_timeout = request_timeout
        self.static_dir = static_dir

    async def _fetch(self, url: str) -> Tuple[bytes, Optional[str]]:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read(), response.headers.get("Content-Type")

    async def _inline_remote(self, url: str, failure_text: str) -> str:
        try:
            data, content_type = await self._fetch(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Failed to fetch image from '{url[:70]}...': {type(e).__name__}")
            return placeholder(failure_text)
        if not _decodes_as_image(data):
            logger.warning(f"Content at '{url[:70]}...' is not an image, using placeholder")
            return placeholder(failure_text)
        return bytes_to_data_url(data, content_type)

    def _static_path(self, path: str) -> Optional[str]:
        """Real path of ``path`` under ``static_dir``; None when it escapes it."""
        root = os.path.realpath(self.static_dir)
        relative = path[2:] if path.startswith("./") else path.lstrip("/")
        candidate = os.path.realpath(os.path.join(root, relative))
        if os.path.commonpath([root, candidate]) != root:
            return None
        return candidate

    async def _inline_local(self, path: str) -> str:
        if not self.static_dir:
            return path  # relative web path, left for the renderer
        local = self._static_path(path)
        if local is None:
            logger.warning(f"Logo path '{path}' is outside the static directory")
            return placeholder("Load Error")
        if not os.path.isfile(local):
            return path
        async with aiofiles.open(local, "rb") as f:
            data = await f.read()
        if not _decodes_as_image(data):
            logger.warning(f"Local logo '{path}' is not an image, using placeholder")
            return placeholder("Invalid Image")
        return bytes_to_data_url(data)

    async def resolve(self, logo: Optional[str]) -> str:
        if not logo:
            return placeholder("Your Logo")

        if is_http_url(logo) and is_storage_url(logo):
            if self.storage is None:
                return await self._inline_remote(logo, "S3 Load Error")
            try:
                loop = asyncio.get_running_loop()
                signed = await loop.run_in_executor(None, self.storage.signed_url, logo)
            except Exception as e:
                logger.warning(f"Failed to sign storage URL: {type(e).__name__}: {e}")
                return placeholder("S3 Load Error")
            return await self._inline_remote(signed, "S3 Load Error")

        if is_http_url(logo):
            return await self._inline_remote(logo, "Load Error")

        if is_base64_data_url(logo):
            return normalize_data_url(logo)

        if is_multipart_data(logo):
            extracted = extract_base64_from_multipart(logo)
            if extracted:
                return extracted
            logger.warning("Failed to extract image from multipart data, using placeholder")
            return placeholder("Multipart Error")

        if logo.startswith(("/", "./")):
            try:
                return await self._inline_local(logo)
            except OSError as e:
                logger.warning(f"Failed to read local logo '{logo}': {e}")
                return placeholder("Load Error")

        logger.warning("Unrecognized logo format, using placeholder")
        return placeholder("Unknown Format")
