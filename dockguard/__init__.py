"""Dockguard static auditor for Dockerfiles and docker-compose files."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("dockguard")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

__all__ = ["__version__"]
