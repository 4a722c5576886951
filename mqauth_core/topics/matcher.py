"""
Topic Matcher
=============
Hierarchical MQTT topic matching against stored ACL patterns.

Matching is pattern driven: only wildcards in the stored pattern are honored.
Wildcards in the requested topic are compared as literal levels, so a
subscription to `a/+` is only granted by a pattern that covers that literal
level (`a/+` or `a/#`), never by the strict pattern `a/b`.
"""

import re
from typing import Iterable, Optional

from .models import Access, AclRequest, AclRule

SINGLE_LEVEL = "+"
MULTI_LEVEL = "#"
LEVEL_SEPARATOR = "/"

USERNAME_PLACEHOLDER = "%u"
CLIENT_ID_PLACEHOLDER = "%c"

_PLACEHOLDER_RE = re.compile(r"%[uc]")


def substitute(pattern: str, username: str, client_id: str) -> Optional[str]:
    """
    Replace %u and %c in a pattern in a single pass.

    Returns None when a substituted value carries an MQTT wildcard, which
    would otherwise widen the pattern for that identity.
    """
    if "%" not in pattern:
        return pattern

    values = {USERNAME_PLACEHOLDER: username or "", CLIENT_ID_PLACEHOLDER: client_id or ""}
    used = set(_PLACEHOLDER_RE.findall(pattern))
    for placeholder in used:
        value = values[placeholder]
        if SINGLE_LEVEL in value or MULTI_LEVEL in value:
            return None

    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(0)], pattern)


def _match_levels(pattern_levels: list, topic_levels: list) -> bool:
    last = len(pattern_levels) - 1
    for index, level in enumerate(pattern_levels):
        if level == MULTI_LEVEL:
            # Only legal as the final level; matches zero or more levels
            return index == last
        if index >= len(topic_levels):
            return False
        if level == SINGLE_LEVEL:
            if topic_levels[index] == "":
                return False
            continue
        if level != topic_levels[index]:
            return False

    return len(pattern_levels) == len(topic_levels)


def topic_matches(pattern: str, topic: str, username: str = "", client_id: str = "") -> bool:
    """
    Check whether a topic satisfies a stored ACL pattern.

    Args:
        pattern: Stored pattern, may contain +, # and %u/%c placeholders
        topic: Requested topic (wildcards here are literals)
        username: Value substituted for %u
        client_id: Value substituted for %c

    Returns:
        True if the pattern grants the topic
    """
    resolved = substitute(pattern, username, client_id)
    if resolved is None:
        return False

    if resolved == "":
        return topic == ""

    return _match_levels(resolved.split(LEVEL_SEPARATOR), topic.split(LEVEL_SEPARATOR))


def access_permits(granted: Access, requested: Access) -> bool:
    """A grant covers a request if it is readwrite or exactly the requested kind."""
    return granted == Access.READWRITE or granted == requested


def rule_permits(rule: AclRule, request: AclRequest) -> bool:
    return access_permits(rule.access, request.access) and topic_matches(
        rule.pattern, request.topic, request.username, request.client_id
    )


def rules_permit(rules: Iterable[AclRule], request: AclRequest) -> bool:
    """Any applicable rule (direct or pattern) with enough access grants the request."""
    return any(rule_permits(rule, request) for rule in rules)
