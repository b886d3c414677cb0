from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from selfiepro.models import UNKNOWN


SCENE_TEMPLATES = {
    "Pakistani House Event": "a vibrant Pakistani home event with colorful decor and warm lighting",
    "Dhaba": "a lively roadside dhaba with charpoys, tea cups and warm string lights",
    "Rooftop": "a rooftop terrace at dusk with city lights blurred in the background",
    "Street": "a busy, colorful street market with rickshaws in the bokeh background",
    "Mall": "a bright modern shopping mall with glass railings and store lights",
    "New York": "a busy New York City street corner with blurred neon billboards",
    "Switzerland": "a Swiss landscape with snow-capped mountains in bright daylight",
    "Movie Set": "a film production set with studio lights, cameras and boom mics",
    "Press Conference": "a formal media event with microphones and camera flashes",
    "Random Encounter": "a candid fan encounter in an airport terminal or coffee shop",
    "Award Show": "a red carpet awards venue with golden lighting and paparazzi flashes",
    "Concert Backstage": "a dimly lit backstage corridor with roadie cases and stage trusses",
}
DEFAULT_TEMPLATE = "Pakistani House Event"


class AnalysisUnavailable(RuntimeError):
    """The vision service could not be reached or returned nothing usable."""


class ComposeUnavailable(RuntimeError):
    """The image generation service failed to return an image."""


@dataclass
class VerificationClaim:
    amount_verified: bool
    confidence: int
    reason: str
    transaction_id: str = UNKNOWN
    sender_name: str = UNKNOWN
    timestamp_text: str = UNKNOWN
    is_edited: bool = False


@dataclass
class ImagePayload:
    data: bytes
    mime_type: str


class BaseReceiptAnalyzer(ABC):
    """Abstract base for receipt vision backends."""

    @abstractmethod
    async def extract(
        self,
        image_bytes: bytes,
        mime_type: str,
        expected_amount: int,
        tolerance: int,
    ) -> VerificationClaim:
        """
        Read a payment receipt screenshot and describe what it shows.

        A receipt that looks forged or shows the wrong amount is NOT an error:
        that is reported through the claim's fields. Only transport or
        infrastructure failures raise AnalysisUnavailable.
        """
        pass


class BaseImageComposer(ABC):
    """Abstract base for group-selfie image generation backends."""

    @abstractmethod
    async def compose(
        self,
        user_image: ImagePayload,
        celebrity_images: List[ImagePayload],
        template: str,
        custom_instructions: Optional[str] = None,
    ) -> str:
        """Return the composed image as a data URL. Raises ComposeUnavailable on failure."""
        pass
