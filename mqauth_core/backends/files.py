"""
Files Backend
=============
Mosquitto-style password and ACL files.

Password file, one user per line:

    alice:PBKDF2$sha512$100000$<salt>$<hash>

ACL file:

    # applies to every user (appears before any "user" line)
    topic read public/#

    user alice
    topic readwrite alice/#
    topic sensors/+

    # pattern lines apply to every user wherever they appear
    pattern read devices/%c/#
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from mqauth_core.config import option_list, option_salt_encoding, option_str, require_options
from mqauth_core.errors import ConfigError
from mqauth_core.hashing import verify_password_async
from mqauth_core.topics import Access, AclRequest, AclRule, rules_permit
from .base import BackendKind

logger = structlog.get_logger(__name__)


def parse_password_file(text: str) -> Dict[str, str]:
    """Parse `username:hash` lines. Blank lines and # comments are skipped."""
    users: Dict[str, str] = {}
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        username, sep, stored = line.partition(":")
        if not sep or not username or not stored:
            raise ConfigError(f"password file line {line_no} is not username:hash", backend="files")
        users[username] = stored
    return users


def _parse_rule_line(parts: List[str], line_no: int) -> Tuple[Access, str]:
    # parts excludes the leading "topic"/"pattern" keyword
    if not parts:
        raise ConfigError(f"acl file line {line_no} has no topic", backend="files")
    if len(parts) == 1:
        return Access.READWRITE, parts[0]
    try:
        access = Access.parse(parts[0])
    except ValueError:
        raise ConfigError(f"acl file line {line_no} has invalid access {parts[0]!r}", backend="files")
    return access, " ".join(parts[1:])


def parse_acl_file(text: str) -> Tuple[List[AclRule], Dict[str, List[AclRule]], List[AclRule]]:
    """
    Parse a mosquitto ACL file.

    Returns:
        (general rules, rules per user, pattern rules)
    """
    general: List[AclRule] = []
    per_user: Dict[str, List[AclRule]] = {}
    patterns: List[AclRule] = []
    current_user: Optional[str] = None

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        keyword, *rest = line.split()
        keyword = keyword.lower()

        if keyword == "user":
            if not rest:
                raise ConfigError(f"acl file line {line_no} has no username", backend="files")
            current_user = " ".join(rest)
            per_user.setdefault(current_user, [])
        elif keyword == "topic":
            access, pattern = _parse_rule_line(rest, line_no)
            if current_user is None:
                general.append(AclRule(pattern=pattern, access=access))
            else:
                per_user[current_user].append(AclRule(pattern=pattern, access=access, username=current_user))
        elif keyword == "pattern":
            access, pattern = _parse_rule_line(rest, line_no)
            patterns.append(AclRule(pattern=pattern, access=access))
        else:
            raise ConfigError(f"acl file line {line_no} has unknown keyword {keyword!r}", backend="files")

    return general, per_user, patterns


class FilesBackend:
    """Credentials and ACLs loaded from local files."""

    kind = BackendKind.FILES

    def __init__(self, options: Mapping[str, Any], name: str = "files"):
        require_options(options, ["files_password_path"], backend=name)

        self.name = name
        self.password_path = Path(option_str(options, "files_password_path"))
        acl_path = option_str(options, "files_acl_path")
        self.acl_path = Path(acl_path) if acl_path else None
        self.salt_encoding = option_salt_encoding(options, backend=name)
        self.superusers = set(option_list(options, "files_superusers"))

        self._users: Dict[str, str] = {}
        self._general: List[AclRule] = []
        self._per_user: Dict[str, List[AclRule]] = {}
        self._patterns: List[AclRule] = []
        self.reload()

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e.strerror}", backend=self.name)

    def reload(self) -> None:
        """(Re)load the password and ACL files."""
        users = parse_password_file(self._read(self.password_path))
        general: List[AclRule] = []
        per_user: Dict[str, List[AclRule]] = {}
        patterns: List[AclRule] = []
        if self.acl_path is not None:
            general, per_user, patterns = parse_acl_file(self._read(self.acl_path))

        self._users, self._general, self._per_user, self._patterns = users, general, per_user, patterns
        logger.info(
            "files_loaded",
            backend=self.name,
            users=len(users),
            acl_users=len(per_user),
            patterns=len(patterns),
        )

    def rules_for(self, username: str) -> List[AclRule]:
        """Candidate rules for a user: user rules, general rules, pattern rules."""
        return self._per_user.get(username, []) + self._general + self._patterns

    async def authenticate(self, username: str, password: str) -> bool:
        stored = self._users.get(username)
        if stored is None:
            return False
        return await verify_password_async(password, stored, self.salt_encoding)

    async def is_superuser(self, username: str) -> bool:
        return username in self.superusers

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        if self.acl_path is None:
            # Without an ACL file every topic is allowed
            return True
        request = AclRequest(username=username, topic=topic, client_id=client_id, access=access)
        return rules_permit(self.rules_for(username), request)

    async def close(self) -> None:
        self._users = {}
        self._per_user = {}
