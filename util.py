import json
import logging
import os
import sys
from typing import Any, Optional, Sequence, Type, TypeVar

import aiofiles
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def env_var(name: str, allow_null: bool = False) -> Optional[str]:
    """Read a setting from the environment, exiting if a required one is missing or empty."""
    value = os.environ.get(name)
    if value is None or value == "":
        if allow_null:
            return None
        sys.exit(f"{name} was not set in the environment")
    return value


async def save_models_to_json(models: Sequence[BaseModel], filepath: str) -> None:
    """Save a sequence of Pydantic models to a JSON file, using their wire aliases.

    Raises:
        RuntimeError: If the file cannot be written
    """
    data: list[Any] = [model.model_dump(mode="json", by_alias=True) for model in models]
    try:
        async with aiofiles.open(filepath, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2))
    except OSError as e:
        raise RuntimeError(f"Failed to save models to {filepath}: {e}") from e
    logger.debug("Saved %d models to %s", len(data), filepath)


async def load_models_from_json(model_class: Type[ModelT], filepath: str) -> list[ModelT]:
    """Load a list of Pydantic models from a JSON file.

    Entries that fail validation are logged and skipped.

    Returns:
        The valid models, or an empty list if the file is missing or unreadable
    """
    if not os.path.exists(filepath):
        return []

    try:
        async with aiofiles.open(filepath, "r", encoding="utf-8") as f:
            models_data = json.loads(await f.read())
    except OSError as e:
        logger.error("Failed to read models from %s: %s", filepath, e)
        return []
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in file %s: %s", filepath, e)
        return []

    models = []
    for model_data in models_data:
        try:
            models.append(model_class.model_validate(model_data))
        except ValidationError as e:
            logger.error("Skipping invalid entry in %s: %s", filepath, e)
    logger.info("Loaded %d models from %s", len(models), filepath)
    return models
