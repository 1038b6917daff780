import re

DEFAULT_ALGORITHM = 'sha256'

_PREFIX_RE = re.compile(r'^([a-z0-9]+(?:[+._-][a-z0-9]+)*):')


def has_algorithm(digest: str) -> bool:
    return _PREFIX_RE.match(digest) is not None


def qualify(digest: str, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Prefix a bare hex digest with its algorithm; qualified digests pass through."""
    if has_algorithm(digest):
        return digest
    return f"{algorithm}:{digest}"
