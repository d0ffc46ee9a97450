"""
Runtime configuration.

Values come from the environment, with a ``.env`` file at the project root
loaded first:

    HABLA_API_KEY=sk-...                 # or OPENAI_API_KEY
    HABLA_BASE_URL=https://gen.pollinations.ai/v1
    HABLA_CHAT_MODEL=openai
    FIREBASE_CREDENTIALS_PATH=./firebase-credentials.json

We use python-dotenv + os.getenv so secrets stay out of git.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .logger import logger

DEFAULT_BASE_URL = "https://gen.pollinations.ai/v1"
DEFAULT_CHAT_MODEL = "openai"
DEFAULT_IMAGE_MODEL = "flux"
DEFAULT_STORE_COLLECTION = "habla_kv"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    chat_model: str = DEFAULT_CHAT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    firebase_credentials_path: Optional[str] = None
    store_collection: str = DEFAULT_STORE_COLLECTION
    debug: bool = False


def mask_secret(secret: str) -> str:
    """Show the first 8 and last 4 characters of a key."""
    return f"{secret[:8]}...{secret[-4:]}" if len(secret) > 12 else "***"


def load_settings(dotenv: bool = True) -> Settings:
    """Read settings from the environment (and ``.env`` when ``dotenv`` is set)."""
    if dotenv:
        logger.env("Loading environment variables from .env file...")
        if load_dotenv():
            logger.env_success("dotenv file loaded successfully")
        else:
            logger.warning("No .env file found or file is empty")

    api_key = os.getenv("HABLA_API_KEY") or os.getenv("OPENAI_API_KEY")
    if api_key:
        logger.env_success(f"API key found: {mask_secret(api_key)}")
    else:
        logger.env_error("No API key found (set HABLA_API_KEY or OPENAI_API_KEY)")

    settings = Settings(
        api_key=api_key,
        base_url=os.getenv("HABLA_BASE_URL", DEFAULT_BASE_URL),
        chat_model=os.getenv("HABLA_CHAT_MODEL", DEFAULT_CHAT_MODEL),
        image_model=os.getenv("HABLA_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
        firebase_credentials_path=os.getenv("FIREBASE_CREDENTIALS_PATH"),
        store_collection=os.getenv("HABLA_STORE_COLLECTION", DEFAULT_STORE_COLLECTION),
        debug=os.getenv("HABLA_DEBUG", "").strip().lower() in ("1", "true", "yes", "on"),
    )
    logger.env(f"Chat endpoint: {settings.base_url} (model: {settings.chat_model})")
    return settings
