# orders/models/__init__.py

from orders.models.order import Order

__all__ = ["Order"]
