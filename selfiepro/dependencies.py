import secrets
from typing import Optional

from fastapi import Header, HTTPException

from selfiepro import config
from selfiepro.adapters.base import BaseImageComposer, BaseReceiptAnalyzer
from selfiepro.adapters.gemini import GeminiImageComposer, GeminiReceiptAnalyzer
from selfiepro.services.tracking import PurchaseTracker

_receipt_analyzer = GeminiReceiptAnalyzer()
_image_composer = GeminiImageComposer()
_purchase_tracker = PurchaseTracker(
    pixel_ids={
        vendor: pixel_id
        for vendor, pixel_id in (
            ("facebook", config.FACEBOOK_PIXEL_ID),
            ("tiktok", config.TIKTOK_PIXEL_ID),
        )
        if pixel_id
    }
)


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identity is established upstream (auth gateway); we only require that it is present."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    if not x_admin_token or not secrets.compare_digest(x_admin_token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Admin access required")


def get_receipt_analyzer() -> BaseReceiptAnalyzer:
    return _receipt_analyzer


def get_image_composer() -> BaseImageComposer:
    return _image_composer


def get_purchase_tracker() -> PurchaseTracker:
    return _purchase_tracker
