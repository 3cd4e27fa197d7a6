"""Payment status normalization shared by the resolver and every ingestion path.

Gateway payloads report statuses in their own casing and vocabulary
("PAID", "SUCCESS", "USER_DROPPED", ...). Everything stored or compared
goes through :func:`normalize_payment_status` first.
"""

PAID = "paid"
FAILED = "failed"
PENDING = "pending"
CANCELLED = "cancelled"

_STATUS_MAP: dict[str, str] = {
    "paid": PAID,
    "success": PAID,
    "successful": PAID,
    "failed": FAILED,
    "failure": FAILED,
    "user_dropped": FAILED,
    "expired": FAILED,
    "cancelled": CANCELLED,
    "canceled": CANCELLED,
    "void": CANCELLED,
    "terminated": CANCELLED,
    "pending": PENDING,
    "initiated": PENDING,
    "active": PENDING,  # gateway order created, not yet paid
    "not_attempted": PENDING,
}


def normalize_payment_status(raw: str | None) -> str | None:
    """Map a raw payment/order status onto paid, failed, pending or cancelled.

    Returns None for empty or unrecognized values.
    """
    if not raw:
        return None
    return _STATUS_MAP.get(raw.strip().lower())


def is_paid(raw: str | None) -> bool:
    return normalize_payment_status(raw) == PAID
