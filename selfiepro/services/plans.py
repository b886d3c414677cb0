from typing import List, Optional

from sqlalchemy.orm import Session

from selfiepro import models

DEFAULT_PLANS = [
    {"id": "basic", "name": "Basic", "price": 299, "credits": 5},
    {"id": "standard", "name": "Standard", "price": 699, "credits": 12},
    {"id": "pro", "name": "Pro", "price": 1299, "credits": 25},
]


def seed_plans(db: Session) -> int:
    """Insert the default plans when the table is empty. Returns rows inserted."""
    if db.query(models.Plan).count() > 0:
        return 0
    for plan in DEFAULT_PLANS:
        db.add(models.Plan(**plan))
    db.commit()
    return len(DEFAULT_PLANS)


def list_plans(db: Session) -> List[models.Plan]:
    return db.query(models.Plan).order_by(models.Plan.price).all()


def get_plan(db: Session, plan_id: str) -> models.Plan:
    plan = db.query(models.Plan).filter(models.Plan.id == plan_id).first()
    if plan is None:
        raise ValueError(f"Plan {plan_id} not found")
    return plan


def update_plan(
    db: Session,
    plan_id: str,
    price: Optional[int] = None,
    credits: Optional[int] = None,
) -> models.Plan:
    plan = get_plan(db, plan_id)
    if price is not None:
        plan.price = price
    if credits is not None:
        plan.credits = credits
    db.commit()
    db.refresh(plan)
    return plan
