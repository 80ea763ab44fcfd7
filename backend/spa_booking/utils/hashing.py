# backend/spa_booking/utils/hashing.py

import hashlib


def customer_reference(customer_id: int) -> str:
    """
    Stable pseudonym for staff-facing views: "Customer #NNNN".

    NNNN is SHA-256 of the customer id modulo 10000, zero-padded, so the
    same customer always gets the same reference across bookings.
    """
    digest = hashlib.sha256(str(customer_id).encode()).hexdigest()
    return f"Customer #{int(digest, 16) % 10000:04d}"
