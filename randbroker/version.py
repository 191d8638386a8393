"""
Version of the randbroker package and the contract identity recorded at
instantiation.

`__version__` comes from the installed distribution's metadata; a source
checkout that was never installed reports BASE_VERSION with a `+src` local
label so it is never mistaken for a release.
"""
from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Bump together with pyproject.toml.
BASE_VERSION = "0.3.0"

_PKG_NAME = "randbroker"

# Stored with the version in META contract_info; storage migrations key off it.
CONTRACT_NAME = "randbroker:broker"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_PKG_NAME)
    except PackageNotFoundError:
        return f"{BASE_VERSION}+src"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION", "CONTRACT_NAME"]
