import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from mockinterview.core.exceptions import AppError
from mockinterview.schemas.config import AppConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


class ConfigStore:
    """Keeps the API credentials in a JSON file readable only by its owner."""

    def __init__(self, config_dir: str | os.PathLike):
        self.path = Path(config_dir) / CONFIG_FILENAME

    def save(self, config: AppConfig) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(config.model_dump(by_alias=True)), encoding="utf-8")
            os.chmod(self.path, 0o600)
        except OSError as e:
            logger.error(f"Error saving config to {self.path}: {e}")
            raise AppError("Failed to save configuration") from e

    def load(self) -> AppConfig | None:
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error loading config from {self.path}: {e}")
            raise AppError("Failed to load configuration") from e

        try:
            return AppConfig.model_validate(json.loads(data))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Config file {self.path} is corrupt: {e}")
            raise AppError("Failed to load configuration") from e
