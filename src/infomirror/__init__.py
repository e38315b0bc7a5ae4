"""InfoMirror – smart mirror presence sensing, lighting and configuration service."""

from importlib.metadata import PackageNotFoundError, version

from .logger import get_logger

logger = get_logger(__name__)

try:
    __version__ = version("infomirror")
    logger.debug("Detected installed InfoMirror version: %s", __version__)
except PackageNotFoundError:  # pragma: no cover - during local dev
    __version__ = "0.0.0"
    logger.warning("Package metadata not found; defaulting version to %s", __version__)


__all__ = ["__version__"]
