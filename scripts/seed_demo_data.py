"""
Seeds a local database with plans, demo accounts and accepted payments for
exercising the API and the duplicate checks by hand.

Contents:
- the default plans (basic / standard / pro)
- 20 demo accounts with 0-40 credits
- ~40 accepted payments spread over the last week
- a few payments whose receipt had no readable id (MANUAL- placeholders)
- a few payments whose sender or time was unreadable (UNKNOWN)
"""
import os
import random
import sys
from datetime import timedelta

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from selfiepro.database import engine, SessionLocal
from selfiepro import models
from selfiepro.models import UNKNOWN, PLACEHOLDER_PREFIX
from selfiepro.services.plans import DEFAULT_PLANS, seed_plans

random.seed(42)

SENDERS = [
    "Ali Khan", "Sana Malik", "Usman Tariq", "Ayesha Siddiqui", "Bilal Ahmed",
    "Hira Javed", "Fahad Qureshi", "Zainab Raza", "Hamza Iqbal", "Mahnoor Shah",
]
MONTHS = ["Oct", "Nov", "Dec"]


def receipt_time():
    hour = random.randint(1, 12)
    minute = random.randint(0, 59)
    return f"{random.randint(1, 28)} {random.choice(MONTHS)}, {hour}:{minute:02d} {random.choice(['AM', 'PM'])}"


def generate_profiles():
    return [
        models.Profile(
            user_id=f"user_{i:03d}",
            full_name=random.choice(SENDERS),
            country="PK",
            credits=random.randint(0, 40),
        )
        for i in range(1, 21)
    ]


def generate_transactions(profiles):
    now = models.utcnow()
    transactions = []
    used_ids = set()
    used_metadata = set()

    # --- 1. Regular accepted payments ---
    while len(transactions) < 40:
        external_id = f"TID{random.randint(10**9, 10**10 - 1)}"
        sender = random.choice(SENDERS)
        timestamp = receipt_time()
        if external_id in used_ids or (sender, timestamp) in used_metadata:
            continue
        used_ids.add(external_id)
        used_metadata.add((sender, timestamp))

        plan = random.choice(DEFAULT_PLANS)
        transactions.append(models.Transaction(
            external_transaction_id=external_id,
            sender_name=sender,
            receipt_timestamp_text=timestamp,
            amount=plan["price"],
            user_id=random.choice(profiles).user_id,
            created_at=now - timedelta(hours=random.uniform(0, 168)),
        ))

    # --- 2. Edge cases ---

    # 3 receipts without a readable id
    for i in range(3):
        transactions.append(models.Transaction(
            external_transaction_id=f"{PLACEHOLDER_PREFIX}{1700000000000 + i}",
            is_placeholder=True,
            sender_name=UNKNOWN,
            receipt_timestamp_text=receipt_time(),
            amount=DEFAULT_PLANS[0]["price"],
            user_id=random.choice(profiles).user_id,
            created_at=now - timedelta(hours=random.uniform(0, 48)),
        ))

    # 3 receipts with a readable id but no sender / time
    for i in range(3):
        transactions.append(models.Transaction(
            external_transaction_id=f"TIDX{i:06d}",
            sender_name=UNKNOWN,
            receipt_timestamp_text=UNKNOWN,
            amount=DEFAULT_PLANS[1]["price"],
            user_id=random.choice(profiles).user_id,
            created_at=now - timedelta(hours=random.uniform(0, 48)),
        ))

    return transactions


def main():
    print("Creating database tables...")
    models.Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        inserted = seed_plans(db)
        print(f"Seeded {inserted} plans.")

        existing = db.query(models.Transaction).count()
        if existing > 0:
            print(f"Database already has {existing} transactions. Skipping seed.")
            return

        profiles = generate_profiles()
        db.add_all(profiles)
        db.flush()

        print("Generating transactions...")
        db.add_all(generate_transactions(profiles))
        db.commit()

        count = db.query(models.Transaction).count()
        print(f"Successfully seeded {len(profiles)} accounts and {count} transactions.")

        placeholders = db.query(models.Transaction).filter(
            models.Transaction.is_placeholder.is_(True)
        ).count()
        print(f"  placeholder ids: {placeholders}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
