"""Store back office for generated sites."""

from .service import CommerceService, ORDER_TRANSITIONS, to_cents

__all__ = ["CommerceService", "ORDER_TRANSITIONS", "to_cents"]
