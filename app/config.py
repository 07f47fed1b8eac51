# app/config.py
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Storage: one folder per world under this directory
    WORLDS_DIR: str = "public/worlds"

    # API configuration
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: List[str] = ["*"]

    LOG_LEVEL: str = "INFO"
    VERSION: str = "0.1.0"


@lru_cache()
def get_settings():
    return Settings()
