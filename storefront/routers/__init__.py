from . import auth, checkout, gateways, orders, webhooks_stripe

__all__ = ["auth", "checkout", "gateways", "orders", "webhooks_stripe"]
