import json
import os
from typing import Optional

from insight_dash.config.settings import settings
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

API_KEY_FIELD = "llm_api_key"


class CredentialStore:
    """
    Key-value store for the single LLM API credential.

    The key is loaded from a JSON file when the store is created and written
    back on every update. When the file holds no key the LLM_API_KEY setting
    is used instead.
    """

    def __init__(self, path: Optional[str] = None, fallback_key: Optional[str] = None):
        self.path = path or settings.CREDENTIALS_FILE
        self._fallback_key = fallback_key if fallback_key is not None else settings.LLM_API_KEY
        self._api_key: Optional[str] = None
        self.load()

    def load(self) -> Optional[str]:
        if not os.path.exists(self.path):
            self._api_key = None
            return self.get_api_key()

        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read credentials from {self.path}: {e}")
            data = {}

        value = data.get(API_KEY_FIELD) if isinstance(data, dict) else None
        self._api_key = value or None
        return self.get_api_key()

    def get_api_key(self) -> Optional[str]:
        return self._api_key or self._fallback_key

    def has_api_key(self) -> bool:
        return bool(self.get_api_key())

    def set_api_key(self, key: str) -> None:
        key = (key or "").strip()
        self._api_key = key or None

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({API_KEY_FIELD: key}, fh)
        logger.info("API credential updated.")
