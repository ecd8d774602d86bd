#!/usr/bin/env python3
"""
Permissions - Unix style rwx permissions and file metadata for the virtual filesystem
"""

import math
from datetime import datetime
from typing import NamedTuple, Optional


MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

# ls -l switches from "HH:MM" to the year for files older than this
RECENT_DAYS = 180


class PermissionTriple(NamedTuple):
    """Read/write/execute flags for one of owner, group or other"""
    read: bool
    write: bool
    execute: bool

    def to_str(self) -> str:
        return (('r' if self.read else '-') +
                ('w' if self.write else '-') +
                ('x' if self.execute else '-'))

    def to_bits(self) -> int:
        return (0o4 if self.read else 0) | (0o2 if self.write else 0) | (0o1 if self.execute else 0)

    @classmethod
    def from_bits(cls, bits: int) -> 'PermissionTriple':
        return cls(bool(bits & 0o4), bool(bits & 0o2), bool(bits & 0o1))


class FilePermissions(NamedTuple):
    """Permission triples for owner, group and other"""
    owner: PermissionTriple
    group: PermissionTriple
    other: PermissionTriple

    def to_str(self) -> str:
        """Format as the 9 character rwx string, e.g. rwxr-xr-x"""
        return self.owner.to_str() + self.group.to_str() + self.other.to_str()

    def to_mode(self) -> int:
        """Convert to an octal mode such as 0o755"""
        return (self.owner.to_bits() << 6) | (self.group.to_bits() << 3) | self.other.to_bits()

    @classmethod
    def from_mode(cls, mode: int) -> 'FilePermissions':
        """Build permissions from an octal mode such as 0o644"""
        return cls(
            PermissionTriple.from_bits((mode >> 6) & 0o7),
            PermissionTriple.from_bits((mode >> 3) & 0o7),
            PermissionTriple.from_bits(mode & 0o7),
        )


class FileMetadata:
    """Attributes attached to every node in the virtual filesystem"""

    def __init__(self, permissions: FilePermissions, owner: str = 'root',
                 group: str = 'root', size: int = 0,
                 modified: Optional[datetime] = None,
                 created: Optional[datetime] = None,
                 link_count: int = 1):
        self.permissions = permissions
        self.owner = owner
        self.group = group
        self.size = size
        self.modified = modified if modified is not None else datetime.now()
        self.created = created if created is not None else self.modified
        self.link_count = link_count

    def copy(self) -> 'FileMetadata':
        """Return an independent copy of this metadata"""
        return FileMetadata(
            permissions=self.permissions,
            owner=self.owner,
            group=self.group,
            size=self.size,
            modified=self.modified,
            created=self.created,
            link_count=self.link_count,
        )

    def __repr__(self) -> str:
        return (f"FileMetadata({self.permissions.to_str()}, {self.owner}:{self.group}, "
                f"size={self.size}, links={self.link_count})")


def parse_permission_string(perm_str: str) -> FilePermissions:
    """Parse a permission string like "rwxr-xr-x" or "rw-r--r--"."""
    if len(perm_str) != 9:
        raise ValueError(f"Invalid permission string length: {perm_str!r}")

    def triple(chunk: str) -> PermissionTriple:
        return PermissionTriple(chunk[0] == 'r', chunk[1] == 'w', chunk[2] == 'x')

    return FilePermissions(triple(perm_str[0:3]), triple(perm_str[3:6]), triple(perm_str[6:9]))


def format_permission_string(permissions: FilePermissions, is_directory: bool = False) -> str:
    """Format permissions in ls -l style, including the type flag"""
    type_char = 'd' if is_directory else '-'
    return type_char + permissions.to_str()


def default_directory_permissions() -> FilePermissions:
    return FilePermissions.from_mode(0o755)


def default_file_permissions() -> FilePermissions:
    return FilePermissions.from_mode(0o644)


def executable_file_permissions() -> FilePermissions:
    return FilePermissions.from_mode(0o755)


def system_file_permissions() -> FilePermissions:
    return FilePermissions.from_mode(0o600)


def format_file_size(size: int) -> str:
    """Human readable size (ls -h style)"""
    if size < 1024:
        return str(size)
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}K"
    if size < 1024 * 1024 * 1024:
        return f"{size / 1024 / 1024:.1f}M"
    return f"{size / 1024 / 1024 / 1024:.1f}G"


def format_date(date: datetime, now: Optional[datetime] = None) -> str:
    """
    Format a timestamp the way ls -l does.

    Recent files show "Mon DD HH:MM", anything 180 days or more away from
    now shows "Mon DD YYYY". The day is space padded to two characters.
    """
    if now is None:
        now = datetime.now()

    diff_days = math.ceil(abs((now - date).total_seconds()) / (60 * 60 * 24))
    month = MONTHS[date.month - 1]

    if diff_days < RECENT_DAYS:
        return f"{month} {date.day:>2} {date.hour:02d}:{date.minute:02d}"
    return f"{month} {date.day:>2} {date.year}"
