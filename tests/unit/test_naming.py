"""Unit tests for naming module."""

import string
from dataclasses import asdict

import pytest

from azzonal.log_sanitizer import LogSanitizer
from azzonal.naming import (
    PASSWORD_SPECIALS,
    ResourceNames,
    create_password,
    create_random_name,
    create_username,
)


class TestCreateRandomName:
    """Tests for random resource names."""

    def test_starts_with_prefix(self):
        assert create_random_name("rgCOMV").startswith("rgCOMV")

    def test_respects_max_length(self):
        assert len(create_random_name("pip1")) == 30
        assert len(create_random_name("lVM1", 15)) == 15

    def test_names_are_distinct(self):
        names = {create_random_name("ds") for _ in range(50)}
        assert len(names) == 50

    def test_prefix_too_long(self):
        with pytest.raises(ValueError, match="no room"):
            create_random_name("a" * 30)


class TestCredentials:
    """Tests for generated admin credentials."""

    def test_username(self):
        assert create_username() == "azureuser"

    def test_password_meets_complexity_rules(self):
        """Test that all four character classes are present."""
        for _ in range(20):
            password = create_password()
            assert len(password) == 20
            assert any(c in string.ascii_uppercase for c in password)
            assert any(c in string.ascii_lowercase for c in password)
            assert any(c in string.digits for c in password)
            assert any(c in PASSWORD_SPECIALS for c in password)

    def test_password_too_short(self):
        with pytest.raises(ValueError, match="at least 16"):
            create_password(8)

    def test_password_registered_with_sanitizer(self):
        password = create_password()
        assert LogSanitizer.sanitize(f"body: {password}") == "body: [REDACTED]"


class TestResourceNames:
    """Tests for the per-run name set."""

    def test_generate_unique(self):
        names = ResourceNames.generate()
        values = names.as_list()
        assert len(values) == 12
        assert len(set(values)) == len(values)

    def test_generate_prefixes(self):
        names = ResourceNames.generate()
        assert names.resource_group.startswith("rgCOMV")
        assert names.vm_1.startswith("lVM1")
        assert names.vm_2.startswith("lVM2")
        assert names.public_ip_1.startswith("pip1")
        assert names.public_ip_2.startswith("pip2")
        assert names.data_disk.startswith("ds")

    def test_duplicates_rejected(self, resource_names):
        values = asdict(resource_names)
        values["vm_2"] = values["vm_1"]

        with pytest.raises(ValueError, match="unique"):
            ResourceNames(**values)
