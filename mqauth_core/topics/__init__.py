"""
mqauth-core - Topic ACLs
========================
MQTT topic pattern matching and ACL rule evaluation.

Pattern tokens:
- `+`  matches exactly one non-empty topic level
- `#`  final level only, matches zero or more remaining levels
- `%u` replaced by the username, `%c` by the client id
"""

from .models import Access, AclRule, AclRequest
from .matcher import (
    substitute,
    topic_matches,
    access_permits,
    rule_permits,
    rules_permit,
)

__all__ = [
    # Models
    "Access",
    "AclRule",
    "AclRequest",
    # Matching
    "substitute",
    "topic_matches",
    "access_permits",
    "rule_permits",
    "rules_permit",
]
