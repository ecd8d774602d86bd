"""Tests for rwx permissions, metadata and ls -l style formatting."""

from datetime import timedelta

import pytest

from nexusterm.permissions import (
    FileMetadata,
    FilePermissions,
    PermissionTriple,
    default_directory_permissions,
    default_file_permissions,
    executable_file_permissions,
    format_date,
    format_file_size,
    format_permission_string,
    parse_permission_string,
    system_file_permissions,
)
from tests.conftest import NOW


class TestPermissionStrings:
    """Canonical rendering of permission triples."""

    def test_directory_preset(self) -> None:
        assert format_permission_string(default_directory_permissions(), True) == 'drwxr-xr-x'

    def test_regular_file_preset(self) -> None:
        assert format_permission_string(default_file_permissions(), False) == '-rw-r--r--'

    def test_executable_preset(self) -> None:
        assert format_permission_string(executable_file_permissions()) == '-rwxr-xr-x'

    def test_system_file_preset(self) -> None:
        assert format_permission_string(system_file_permissions()) == '-rw-------'

    def test_string_is_ten_characters(self) -> None:
        assert len(format_permission_string(default_file_permissions(), True)) == 10

    def test_parse_round_trips_through_format(self) -> None:
        perms = parse_permission_string('rwxr-x--x')
        assert perms.owner == PermissionTriple(True, True, True)
        assert perms.group == PermissionTriple(True, False, True)
        assert perms.other == PermissionTriple(False, False, True)
        assert perms.to_str() == 'rwxr-x--x'

    def test_parse_rejects_wrong_length(self) -> None:
        with pytest.raises(ValueError):
            parse_permission_string('rwx')

    def test_octal_mode_conversion(self) -> None:
        perms = FilePermissions.from_mode(0o640)
        assert perms.to_str() == 'rw-r-----'
        assert perms.to_mode() == 0o640


class TestFileMetadata:
    """Metadata defaults and copies."""

    def test_created_defaults_to_modified(self) -> None:
        meta = FileMetadata(default_file_permissions(), modified=NOW)
        assert meta.created == NOW
        assert meta.link_count == 1

    def test_copy_is_independent(self) -> None:
        meta = FileMetadata(default_file_permissions(), 'user', 'user', 12, NOW)
        clone = meta.copy()
        clone.owner = 'root'
        assert meta.owner == 'user'
        assert clone.size == 12
        assert clone.modified == NOW


class TestFormatDate:
    """ls -l switches from time of day to the year after 180 days."""

    def test_recent_date_shows_time(self) -> None:
        assert format_date(NOW - timedelta(days=10), NOW) == 'Oct  9 12:30'

    def test_old_date_shows_year(self) -> None:
        assert format_date(NOW - timedelta(days=200), NOW) == 'Apr  2 2026'

    def test_179_days_is_still_recent(self) -> None:
        assert format_date(NOW - timedelta(days=179), NOW) == 'Apr 23 12:30'

    def test_partial_day_rounds_up_past_threshold(self) -> None:
        date = NOW - timedelta(days=179, hours=12)
        assert format_date(date, NOW) == 'Apr 23 2026'

    def test_future_dates_use_absolute_difference(self) -> None:
        assert format_date(NOW + timedelta(days=365), NOW) == 'Oct 19 2027'

    def test_two_digit_day_is_not_padded(self) -> None:
        assert format_date(NOW, NOW) == 'Oct 19 12:30'


class TestFormatFileSize:
    """Human readable sizes."""

    @pytest.mark.parametrize('size, expected', [
        (0, '0'),
        (1023, '1023'),
        (2048, '2.0K'),
        (1536 * 1024, '1.5M'),
        (3 * 1024 ** 3, '3.0G'),
    ])
    def test_units(self, size, expected) -> None:
        assert format_file_size(size) == expected
