"""missio - variable resolution and OAuth2 token engine for REST collections."""

from missio.version import PACKAGE_NAME, PACKAGE_VERSION

__all__ = ["PACKAGE_NAME", "PACKAGE_VERSION"]
