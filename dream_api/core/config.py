import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, SecretStr

load_dotenv()


class Settings(BaseModel):
    """Every setting the service and the journal client read from the environment."""

    groq_api_key: Optional[SecretStr] = None
    provider_base_url: str = "https://api.groq.com/openai/v1"
    chat_model: str = "llama-3.1-70b-versatile"
    temperature: float = 0.7
    max_tokens: int = 1024
    storage_dir: str = "data"
    storage_key: str = "journalEntries"
    api_url: str = "http://localhost:8000"
    request_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            provider_base_url=os.getenv("DREAM_PROVIDER_BASE_URL") or defaults.provider_base_url,
            chat_model=os.getenv("DREAM_MODEL") or defaults.chat_model,
            storage_dir=os.getenv("DREAM_STORAGE_DIR") or defaults.storage_dir,
            storage_key=os.getenv("DREAM_STORAGE_KEY") or defaults.storage_key,
            api_url=os.getenv("DREAM_API_URL") or defaults.api_url,
            request_timeout=os.getenv("DREAM_REQUEST_TIMEOUT") or defaults.request_timeout,
            log_level=(os.getenv("LOG_LEVEL") or defaults.log_level).upper(),
        )
