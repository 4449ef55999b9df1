"""
Admin API Rate Limiting

slowapi limits keyed by the socket peer address. Forwarding headers are
client-controlled, so they are not used to pick the bucket.

GET /go/{short_code} is not limited: visitors arrive from ads, emails and
social posts, and a 429 would be an error page in place of the merchant.
Abusive redirect traffic is handled by the IP block list and fraud scoring.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# "count/period" per endpoint
RATE_LIMITS = {
    "create_link": "30/minute",
    "stats": "60/minute",
    "blocklist": "30/minute",
    "suspicious": "30/minute",
}
