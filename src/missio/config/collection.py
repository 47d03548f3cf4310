"""Collection and folder file loading."""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from missio.sdk.variables.models import MissioCollection, OpenCollection, RequestDefaults

logger = logging.getLogger(__name__)

__all__ = ["load_collection", "load_folder_defaults"]


def _read_mapping(path: Path, kind: str) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found at {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{kind} file {path} must be a mapping")
    return data


def load_collection(path: str | Path, collection_id: str | None = None) -> MissioCollection:
    """Load a collection YAML file.

    The collection id defaults to the absolute file path and the root
    directory (used for dotenv files) is the file's directory.
    """
    file_path = Path(path).expanduser().resolve()
    data = _read_mapping(file_path, "Collection")
    try:
        parsed = OpenCollection.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid collection {file_path}: {exc}") from exc

    logger.debug(
        "Loaded collection %s with %d environment(s)",
        file_path,
        len(parsed.config.environments),
    )
    return MissioCollection(
        id=collection_id or str(file_path),
        root_dir=file_path.parent,
        file_path=file_path,
        data=parsed,
    )


def load_folder_defaults(path: str | Path) -> RequestDefaults:
    """Load folder request defaults from a folder YAML file.

    Accepts either a bare defaults mapping or one nested under ``request``.
    """
    file_path = Path(path).expanduser()
    data = _read_mapping(file_path, "Folder")
    request = data.get("request", data)
    try:
        return RequestDefaults.model_validate(request or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid folder defaults {file_path}: {exc}") from exc
