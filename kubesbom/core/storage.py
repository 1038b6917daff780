import json
import os
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from kubesbom.core.config import get_config
from kubesbom.core.exceptions import ArtifactDecodeError
from kubesbom.core.logging import get_logger
from kubesbom.models.artifact import Artifact

logger = get_logger('storage')


def load_artifacts(filepath: str | Path) -> list[Artifact]:
    """
    Load collected artifacts from a JSON array or a JSONL file.

    Raises:
        ArtifactDecodeError if the file cannot be parsed
    """
    path = Path(filepath)
    text = path.read_text(encoding='utf-8')
    if not text.strip():
        return []

    try:
        if text.lstrip().startswith('['):
            records = json.loads(text)
        else:
            records = [
                json.loads(line) for line in text.splitlines() if line.strip()
            ]
    except json.JSONDecodeError as e:
        raise ArtifactDecodeError(f"invalid JSON in {path}: {e}") from e

    artifacts = []
    for index, record in enumerate(records):
        try:
            artifacts.append(Artifact.model_validate(record))
        except ValidationError as e:
            raise ArtifactDecodeError(
                f"invalid artifact #{index} in {path}: {e}",
            ) from e

    logger.debug('Loaded artifacts', path=str(path), count=len(artifacts))
    return artifacts


def write_raw_resource(artifact: Artifact) -> Path:
    """Write the artifact's raw resource to a temporary YAML file for config scanning."""
    prefix = f"{artifact.namespace}-{artifact.name}-".replace('/', '_')
    temp_dir = get_config().paths.temp_dir
    fd, filename = tempfile.mkstemp(
        prefix=prefix, suffix='.yaml', dir=temp_dir,
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yaml.safe_dump(artifact.raw_resource, f, sort_keys=False)
    except (OSError, yaml.YAMLError):
        remove_file(Path(filename))
        raise
    return Path(filename)


def remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning('Failed to remove temporary file', path=str(path), error=str(e))
