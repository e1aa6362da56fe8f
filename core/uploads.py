import logging

import cloudinary
import cloudinary.uploader
from django.conf import settings

from .exceptions import ApiError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
MAX_IMAGE_SIZE = 10 * 1024 * 1024


def configure_cloudinary():
    creds = settings.CLOUDINARY
    if not creds.get("cloud_name"):
        raise ApiError("Image uploads are not configured.", status_code=500)
    cloudinary.config(secure=True, **creds)


def upload_image(file_obj, folder):
    """Upload an image to Cloudinary and return ``{"url", "publicId"}``."""
    content_type = getattr(file_obj, "content_type", "")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ApiError("Only JPEG, PNG, WEBP and GIF images are allowed.")
    if file_obj.size > MAX_IMAGE_SIZE:
        raise ApiError("Image must be 10MB or smaller.")

    configure_cloudinary()
    result = cloudinary.uploader.upload(
        file_obj,
        folder=f"{settings.CLOUDINARY_FOLDER}/{folder}",
        resource_type="image",
    )
    logger.info("Uploaded image %s", result.get("public_id"))
    return {"url": result["secure_url"], "publicId": result["public_id"]}
