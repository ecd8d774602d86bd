#!/usr/bin/env python3
"""
Virtual Filesystem - In-memory file tree loaded from a static JSON definition
"""

import os
import json
import random
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from nexusterm.permissions import (
    FileMetadata,
    default_directory_permissions,
    default_file_permissions,
    executable_file_permissions,
    system_file_permissions,
)

logger = logging.getLogger(__name__)

DEFAULT_DEFINITION = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), 'data', 'filesystem.json'
)

HOME = ['root']
DIRECTORY_SIZE = 4096

# Timestamps are spread over this many days before load time
TIMESTAMP_JITTER_DAYS = 30

EXECUTABLE_NAMES = ('bash', 'sh', 'python', 'python3')
SYSTEM_PREFIXES = ('/etc/', '/proc/', '/sys/')


class MalformedFilesystemData(ValueError):
    """Raised when the static filesystem definition cannot be loaded"""


class FileSystemNode:
    """A node in the virtual filesystem"""

    is_directory = False

    def __init__(self, metadata: FileMetadata):
        self.metadata = metadata


class FileNode(FileSystemNode):
    """A regular file with text content"""

    def __init__(self, metadata: FileMetadata, content: str = ""):
        super().__init__(metadata)
        self.content = content

    def __repr__(self) -> str:
        return f"FileNode(size={len(self.content)})"


class DirectoryNode(FileSystemNode):
    """A directory owning its children by name"""

    is_directory = True

    def __init__(self, metadata: FileMetadata,
                 children: Optional[Dict[str, FileSystemNode]] = None):
        super().__init__(metadata)
        self.children: Dict[str, FileSystemNode] = children if children is not None else {}

    def __repr__(self) -> str:
        return f"DirectoryNode({sorted(self.children)})"


def is_executable_file(name: str, path: str) -> bool:
    """Files under any bin/ or sbin/ directory, plus well known interpreters"""
    return '/bin/' in path or '/sbin/' in path or name in EXECUTABLE_NAMES


def is_system_file(path: str) -> bool:
    """Files in /etc, /proc and /sys get restricted permissions"""
    return path.startswith(SYSTEM_PREFIXES)


def get_file_owner(path: str) -> str:
    if path.startswith('/root/'):
        return 'root'
    if path.startswith('/home/'):
        return 'user'
    return 'root'


def get_file_group(path: str) -> str:
    if path.startswith('/root/'):
        return 'root'
    if path.startswith('/home/'):
        return 'user'
    return 'root'


def make_metadata(path: str, is_directory: bool, size: int,
                  modified: datetime) -> FileMetadata:
    """Build the metadata for the node living at an absolute path"""
    name = path.rsplit('/', 1)[-1]

    if is_directory:
        permissions = default_directory_permissions()
    elif is_executable_file(name, path):
        permissions = executable_file_permissions()
    elif is_system_file(path):
        permissions = system_file_permissions()
    else:
        permissions = default_file_permissions()

    return FileMetadata(
        permissions=permissions,
        owner=get_file_owner(path),
        group=get_file_group(path),
        size=DIRECTORY_SIZE if is_directory else size,
        modified=modified,
        created=modified,
        link_count=1,
    )


def load_filesystem_definition(path: Optional[str] = None) -> Dict[str, Any]:
    """Read the static filesystem definition from a JSON file"""
    if path is None:
        path = os.getenv('NEXUSTERM_FILESYSTEM', DEFAULT_DEFINITION)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise MalformedFilesystemData(f"{path}: invalid JSON: {e}") from e


def build_filesystem(definition: Dict[str, Any],
                     rng: Optional[random.Random] = None,
                     now: Optional[datetime] = None) -> DirectoryNode:
    """
    Materialize the node tree described by a static definition.

    The definition is rooted at "/" and every node looks like
    {"type": "file"|"directory", "content": ..., "children": {...}}.
    Metadata is synthesized in the same depth-first pass, each node stamped
    with a random instant from the last 30 days.
    """
    if rng is None:
        rng = random.Random()
    if now is None:
        now = datetime.now()

    if not isinstance(definition, dict) or '/' not in definition:
        raise MalformedFilesystemData("filesystem definition has no '/' root")

    root_data = definition['/']
    if not isinstance(root_data, dict) or root_data.get('type', 'directory') != 'directory':
        raise MalformedFilesystemData("'/' must be a directory")

    children = _build_children(root_data, '', rng, now)
    return DirectoryNode(make_metadata('/', True, DIRECTORY_SIZE, now), children)


def _build_children(data: Dict[str, Any], parent_path: str,
                    rng: random.Random, now: datetime) -> Dict[str, FileSystemNode]:
    children = data.get('children')
    if not isinstance(children, dict):
        raise MalformedFilesystemData(f"{parent_path or '/'}: directory has no children mapping")

    nodes: Dict[str, FileSystemNode] = {}
    for name, child in children.items():
        full_path = f"{parent_path}/{name}"
        nodes[name] = _build_node(child, full_path, rng, now)
    return nodes


def _build_node(data: Any, path: str, rng: random.Random, now: datetime) -> FileSystemNode:
    if not isinstance(data, dict):
        raise MalformedFilesystemData(f"{path}: node must be an object")

    node_type = data.get('type')
    modified = now - timedelta(seconds=rng.random() * TIMESTAMP_JITTER_DAYS * 24 * 60 * 60)

    if node_type == 'directory':
        if 'content' in data:
            raise MalformedFilesystemData(f"{path}: directory cannot have content")
        children = _build_children(data, path, rng, now)
        return DirectoryNode(make_metadata(path, True, DIRECTORY_SIZE, modified), children)

    if node_type == 'file':
        if 'children' in data:
            raise MalformedFilesystemData(f"{path}: file cannot have children")
        content = data.get('content', '')
        if not isinstance(content, str):
            raise MalformedFilesystemData(f"{path}: file content must be a string")
        return FileNode(make_metadata(path, False, len(content), modified), content)

    raise MalformedFilesystemData(f"{path}: unknown node type {node_type!r}")


def resolve_path(path: str, cwd: List[str]) -> List[str]:
    """Resolve a user supplied path against the current directory into segments"""
    if path == '~':
        return list(HOME)

    if path.startswith('~/'):
        return HOME + [part for part in path[2:].split('/') if part]

    if path.startswith('/'):
        return [part for part in path.split('/') if part]

    resolved = list(cwd)
    for part in path.split('/'):
        if not part or part == '.':
            continue
        if part == '..':
            if resolved:
                resolved.pop()
        else:
            resolved.append(part)
    return resolved


def format_path(segments: List[str]) -> str:
    """Absolute path string for a list of segments"""
    return '/' + '/'.join(segments)


def display_path(segments: List[str]) -> str:
    """Absolute path with the home directory shortened to ~"""
    full_path = format_path(segments)
    home = format_path(HOME)

    if full_path == home:
        return '~'
    if full_path.startswith(home + '/'):
        return '~' + full_path[len(home):]
    return full_path


class VirtualFilesystem:
    """An owned, mutable file tree for a single terminal"""

    def __init__(self, definition: Optional[Dict[str, Any]] = None,
                 rng: Optional[random.Random] = None,
                 now: Optional[datetime] = None):
        if definition is None:
            definition = load_filesystem_definition()
        self.root = build_filesystem(definition, rng=rng, now=now)
        logger.info(f"Virtual filesystem loaded with {self.count_nodes()} nodes")

    def get_node(self, segments: List[str]) -> Optional[FileSystemNode]:
        """Walk from the root; None if any segment is missing"""
        current: FileSystemNode = self.root
        for part in segments:
            if not isinstance(current, DirectoryNode):
                return None
            child = current.children.get(part)
            if child is None:
                return None
            current = child
        return current

    def get_directory(self, segments: List[str]) -> Optional[DirectoryNode]:
        node = self.get_node(segments)
        return node if isinstance(node, DirectoryNode) else None

    def count_nodes(self, directory: Optional[DirectoryNode] = None) -> int:
        """Number of nodes below a directory (the whole tree by default)"""
        if directory is None:
            directory = self.root

        total = 0
        for child in directory.children.values():
            total += 1
            if isinstance(child, DirectoryNode):
                total += self.count_nodes(child)
        return total
