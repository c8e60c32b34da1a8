"""
Per-client request throttling using slowapi.

This sits in front of the engine's own rule (one live code per key) and
protects against a single client hammering many identities.

Three tiers:
  • strict  – 5/min  (code issue endpoints – prevents SMS/email spam)
  • auth    – 10/min (code verify endpoints – prevents brute-force)
  • default – 60/min (everything else)

The limiter keys on client IP by default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

# Named rate strings for use in @limiter.limit() decorators
STRICT = "5/minute"     # code issue
AUTH = "10/minute"      # code verification
DEFAULT = "60/minute"   # stats, health, debug
