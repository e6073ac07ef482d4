# billify/infrastructure/cloudinary/upload_file.py
import random
import re
import string
import time
from io import BytesIO
from typing import Optional, Tuple
from urllib.parse import urlparse

import cloudinary, cloudinary.uploader, cloudinary.utils
from billify.config.settings import settings


# Configure once (the SDK reads CLOUDINARY_URL from the environment; split vars override it)
_credentials = dict(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
)
cloudinary.config(secure=True, **{k: v for k, v in _credentials.items() if v})

_VERSION = re.compile(r"^v\d+$")
_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]")


def generate_key(original_name: str, prefix: str = "logos") -> str:
    """``<prefix>/<timestamp>-<random>.<ext>``"""
    timestamp = int(time.time() * 1000)
    random_part = "".join(random.choices(string.ascii_lowercase + string.digits, k=13))
    extension = original_name.rsplit(".", 1)[-1] if "." in original_name else "png"
    return f"{prefix}/{timestamp}-{random_part}.{extension}"


def generate_pdf_key(file_name: str, prefix: str = "pdfs") -> str:
    timestamp = int(time.time() * 1000)
    random_part = "".join(random.choices(string.ascii_lowercase + string.digits, k=13))
    return f"{prefix}/{timestamp}-{random_part}-{_UNSAFE.sub('_', file_name)}.pdf"


def is_storage_url(url: str) -> bool:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return False
    return "cloudinary.com" in host or "s3" in host or "amazonaws.com" in host


def parse_storage_url(url: str) -> Tuple[str, str, Optional[str]]:
    """Split a delivery URL into (resource_type, public_id, format)."""
    parts = [p for p in urlparse(url).path.split("/") if p]
    # /<cloud>/<resource_type>/<type>/[v123/]<public_id...>
    if len(parts) < 4:
        raise ValueError(f"Not a storage delivery URL: {url}")
    resource_type = parts[1]
    rest = parts[3:]
    if rest and _VERSION.match(rest[0]):
        rest = rest[1:]
    public_id = "/".join(rest)
    if resource_type == "raw":
        # Raw public ids keep their extension
        return resource_type, public_id, None
    stem, _, fmt = public_id.rpartition(".")
    return (resource_type, stem, fmt) if stem else (resource_type, public_id, None)


class CloudinaryStorage:
    """Object storage over the Cloudinary upload API."""

    def __init__(self, logo_folder: str = settings.CLOUDINARY_LOGO_FOLDER,
                 pdf_folder: str = settings.CLOUDINARY_PDF_FOLDER):
        self.logo_folder = logo_folder
        self.pdf_folder = pdf_folder

    @staticmethod
    def validate_config() -> bool:
        return settings.cloudinary_configured

    def put_object(self, key: str, data: bytes, content_type: str) -> str:
        resource_type = "image" if content_type.startswith("image/") else "raw"
        if resource_type == "image":
            # Cloudinary appends the format itself
            key = key.rsplit(".", 1)[0]
        buf = BytesIO(data)
        res = cloudinary.uploader.upload(
            buf,
            resource_type=resource_type,
            public_id=key,
            overwrite=True,
            tags=[key.split("/", 1)[0]],
        )
        return res["secure_url"]

    def upload_pdf(self, pdf_bytes: bytes, file_name: str) -> str:
        return self.put_object(generate_pdf_key(file_name, self.pdf_folder), pdf_bytes, "application/pdf")

    def upload_logo(self, image_bytes: bytes, original_name: str, content_type: str = "image/png") -> str:
        return self.put_object(generate_key(original_name, self.logo_folder), image_bytes, content_type)

    def signed_url(self, url: str, expires_in: int = settings.SIGNED_URL_EXPIRES_SECONDS) -> str:
        resource_type, public_id, fmt = parse_storage_url(url)
        return cloudinary.utils.private_download_url(
            public_id,
            fmt or "",
            resource_type=resource_type,
            type="upload",
            expires_at=int(time.time()) + expires_in,
        )
