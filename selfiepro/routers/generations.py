from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from selfiepro.adapters.base import BaseImageComposer, ComposeUnavailable
from selfiepro.database import get_db
from selfiepro.dependencies import get_current_user_id, get_image_composer
from selfiepro.schemas.requests import GenerationRequest
from selfiepro.schemas.responses import GenerationResponse, GenerationResult
from selfiepro.services import generations, ledger

router = APIRouter()


@router.post("", response_model=GenerationResult, status_code=201)
async def create(
    request: GenerationRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    composer: BaseImageComposer = Depends(get_image_composer),
):
    """Compose a group selfie for one credit."""
    try:
        generation = await generations.create_generation(
            db,
            composer,
            user_id,
            request.user_image.to_payload(),
            [img.to_payload() for img in request.celebrity_images],
            request.template,
            request.custom_instructions,
        )
    except ledger.AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ledger.InsufficientCredits:
        raise HTTPException(status_code=402, detail="Insufficient credits. Please top up.")
    except ComposeUnavailable as e:
        raise HTTPException(status_code=502, detail=f"Failed to generate selfie: {e}")
    except ledger.LedgerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return GenerationResult(
        generation=GenerationResponse.model_validate(generation),
        balance=ledger.get_balance(db, user_id),
    )


@router.get("", response_model=List[GenerationResponse])
def history(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Generations from the last 24 hours, newest first."""
    return generations.list_generations(db, user_id)
