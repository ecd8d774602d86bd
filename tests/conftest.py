"""Shared fixtures: a fixed clock, seeded randomness and small filesystem definitions."""

import random
from datetime import datetime

import pytest

from nexusterm.emulator import CommandEmulator

NOW = datetime(2026, 10, 19, 12, 30, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def small_definition():
    """A tiny tree touching every metadata policy branch."""
    return {
        "/": {
            "type": "directory",
            "children": {
                "bin": {
                    "type": "directory",
                    "children": {"ls": {"type": "file", "content": "ELF"}},
                },
                "etc": {
                    "type": "directory",
                    "children": {
                        "passwd": {"type": "file", "content": "root:x:0:0"},
                        "ssh": {"type": "directory", "children": {}},
                    },
                },
                "home": {
                    "type": "directory",
                    "children": {
                        "user": {
                            "type": "directory",
                            "children": {"notes.txt": {"type": "file", "content": "hi"}},
                        }
                    },
                },
                "root": {
                    "type": "directory",
                    "children": {
                        "empty.txt": {"type": "file"},
                        "bash": {"type": "file", "content": "#!"},
                    },
                },
            },
        }
    }


@pytest.fixture
def emulator():
    """Emulator over the bundled filesystem with deterministic time."""
    return CommandEmulator(rng=random.Random(1234), clock=fixed_clock)
