"""Test package version and basic imports."""

import bridge


def test_version():
    """Verify package version is set."""
    assert bridge.__version__ == "0.1.0"


def test_package_imports():
    """Verify core modules can be imported."""
    from bridge import cli, compose, env_subst, lock, reconnect, ssh  # noqa: F401

    assert bridge is not None
