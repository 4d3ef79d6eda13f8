from tourbook.infrastructure.redis_client import close_redis, get_redis
from tourbook.infrastructure.stripe_client import (
    StripeClient, StripeError, StripeSignatureError, get_stripe_client, verify_webhook_signature,
)

__all__ = [
    "get_redis", "close_redis",
    "StripeClient", "StripeError", "StripeSignatureError", "get_stripe_client", "verify_webhook_signature",
]
