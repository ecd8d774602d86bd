#!/usr/bin/env python3
"""
HackNexus Terminal Package
An emulated Linux shell over an in-memory virtual filesystem
"""

__version__ = '1.0.0'
__author__ = 'HackNexus Team'

from .permissions import FileMetadata, FilePermissions, PermissionTriple
from .filesystem import (
    DirectoryNode,
    FileNode,
    MalformedFilesystemData,
    VirtualFilesystem,
    resolve_path,
)
from .emulator import CommandEmulator, CommandResult
from .shell import TerminalSession

__all__ = [
    'FileMetadata',
    'FilePermissions',
    'PermissionTriple',
    'DirectoryNode',
    'FileNode',
    'MalformedFilesystemData',
    'VirtualFilesystem',
    'resolve_path',
    'CommandEmulator',
    'CommandResult',
    'TerminalSession',
]
