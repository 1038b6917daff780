"""Version information for kubesbom."""
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version


def get_version() -> str:
    """
    Get version from installed package metadata.

    Returns:
        Version string (e.g., "0.3.1")
    """
    try:
        return version('kubesbom')
    except PackageNotFoundError:
        return 'dev'


__version__ = get_version()
