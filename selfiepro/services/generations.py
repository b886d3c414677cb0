"""
Group selfie generations.

A generation costs one credit. The image is composed first; the generation row
and the credit debit then commit in one transaction. The debit is the
authority, so if it fails the image is discarded and nothing is saved.
Generated images are kept for GENERATION_RETENTION_HOURS and then pruned by a
background sweep.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from selfiepro import config, models
from selfiepro.adapters.base import BaseImageComposer, ComposeUnavailable, ImagePayload
from selfiepro.services import ledger

logger = logging.getLogger("selfiepro.generations")

GENERATION_COST = 1


async def create_generation(
    db: Session,
    composer: BaseImageComposer,
    user_id: str,
    user_image: ImagePayload,
    celebrity_images: List[ImagePayload],
    template: str,
    custom_instructions: Optional[str] = None,
) -> models.Generation:
    """
    Raises:
        InsufficientCredits: the user cannot pay for a generation
        AccountNotFound: the user has no balance row
        ComposeUnavailable: the image service failed (no credit is spent)
        LedgerUnavailable: storage failure (no credit is spent, nothing is saved)
    """
    balance = ledger.get_balance(db, user_id)
    if balance < GENERATION_COST:
        raise ledger.InsufficientCredits(user_id, GENERATION_COST, balance)

    try:
        image_data = await asyncio.wait_for(
            composer.compose(user_image, celebrity_images, template, custom_instructions),
            timeout=config.COMPOSE_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as e:
        raise ComposeUnavailable("Image generation timed out") from e

    generation = models.Generation(user_id=user_id, template=template, image_data=image_data)
    try:
        db.add(generation)
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise ledger.LedgerUnavailable("Could not save generation") from e

    # commits the staged generation together with the debit, or rolls both back
    ledger.debit(db, user_id, GENERATION_COST)
    db.refresh(generation)
    return generation


def list_generations(db: Session, user_id: str) -> List[models.Generation]:
    return db.query(models.Generation).filter(
        models.Generation.user_id == user_id
    ).order_by(models.Generation.created_at.desc()).all()


def prune_expired_generations(db: Session, now: Optional[datetime] = None) -> int:
    """Delete generations older than the retention window. Returns rows deleted."""
    now = now or models.utcnow()
    cutoff = now - timedelta(hours=config.GENERATION_RETENTION_HOURS)
    deleted = db.query(models.Generation).filter(
        models.Generation.created_at < cutoff
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


async def retention_sweep(session_factory, interval_seconds: float = None):
    """Run prune_expired_generations forever. A failed sweep is logged and retried next interval."""
    interval_seconds = interval_seconds or config.RETENTION_SWEEP_INTERVAL_SECONDS
    while True:
        db = session_factory()
        try:
            deleted = prune_expired_generations(db)
            if deleted:
                logger.info("Pruned %d expired generations", deleted)
        except Exception:
            logger.exception("Generation retention sweep failed")
        finally:
            db.close()
        await asyncio.sleep(interval_seconds)
