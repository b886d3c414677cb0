import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from selfiepro.adapters.base import SCENE_TEMPLATES, DEFAULT_TEMPLATE, ImagePayload

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/heic", "image/heif"}
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_CELEBRITY_IMAGES = 5


def _strip_data_url(value: str) -> str:
    # "data:image/png;base64,AAAA" -> "AAAA"
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def decode_image(value: str) -> bytes:
    return base64.b64decode(_strip_data_url(value), validate=True)


def _validate_base64_image(v: str) -> str:
    v = _strip_data_url(v.strip())
    if not v:
        raise ValueError("image cannot be empty")
    try:
        data = base64.b64decode(v, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("image must be valid base64")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValueError("image exceeds 10 MB")
    return v


def _validate_mime_type(v: str) -> str:
    v = v.lower()
    if v not in ALLOWED_IMAGE_TYPES:
        raise ValueError(f"Unsupported image type {v}")
    return v


class ImageIn(BaseModel):
    data_base64: str
    mime_type: str = "image/png"

    @field_validator("data_base64")
    @classmethod
    def validate_data(cls, v):
        return _validate_base64_image(v)

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v):
        return _validate_mime_type(v)

    def to_payload(self) -> ImagePayload:
        return ImagePayload(data=decode_image(self.data_base64), mime_type=self.mime_type)


class VerifyReceiptRequest(BaseModel):
    plan_id: str
    receipt_image_base64: str
    mime_type: str = "image/png"

    @field_validator("receipt_image_base64")
    @classmethod
    def validate_receipt(cls, v):
        return _validate_base64_image(v)

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v):
        return _validate_mime_type(v)

    def image_bytes(self) -> bytes:
        return decode_image(self.receipt_image_base64)


class OpenAccountRequest(BaseModel):
    full_name: Optional[str] = None
    country: Optional[str] = None


class GenerationRequest(BaseModel):
    user_image: ImageIn
    celebrity_images: List[ImageIn]
    template: str = DEFAULT_TEMPLATE
    custom_instructions: Optional[str] = Field(default=None, max_length=500)

    @field_validator("celebrity_images")
    @classmethod
    def validate_celebrities(cls, v):
        if not v:
            raise ValueError("Upload at least one celebrity photo")
        if len(v) > MAX_CELEBRITY_IMAGES:
            raise ValueError(f"Maximum {MAX_CELEBRITY_IMAGES} celebrity photos per generation")
        return v

    @field_validator("template")
    @classmethod
    def validate_template(cls, v):
        if v not in SCENE_TEMPLATES:
            raise ValueError(f"Unknown template: {v}")
        return v


class SetCreditsRequest(BaseModel):
    credits: int = Field(..., ge=0)


class UpdatePlanRequest(BaseModel):
    price: Optional[int] = Field(default=None, gt=0)
    credits: Optional[int] = Field(default=None, gt=0)
