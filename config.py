import os
from typing import List, Optional

from pydantic import BaseModel, Field


def _env(name: str, default: Optional[str] = None):
    return Field(default_factory=lambda: os.environ.get(name) or default)


# Chat messages shorter than this are rejected as invalid input
CHAT_MIN_LENGTH = 3
# Website descriptions shorter than this get a clarification answer instead of a site
MIN_DESCRIPTION_LENGTH = 20


class Settings(BaseModel):
    """Runtime configuration read from the environment when instantiated.

    Every credential is optional; a missing one switches the matching
    component to its placeholder output.
    """

    app_name: str = "AI Website Factory"

    deepseek_api_key: Optional[str] = _env("DEEPSEEK_API_KEY")
    deepseek_api_url: str = _env("DEEPSEEK_API_URL", "https://api.deepseek.com/v1/chat/completions")
    deepseek_model: str = _env("DEEPSEEK_MODEL", "deepseek-coder")

    github_token: Optional[str] = _env("GITHUB_TOKEN")
    vercel_token: Optional[str] = _env("VERCEL_TOKEN")
    vercel_project_id: Optional[str] = _env("VERCEL_PROJECT_ID")

    port: int = Field(default_factory=lambda: int(os.environ.get("PORT") or 3000))
    cors_origins: str = _env("CORS_ORIGINS", "*")

    def credentials_configured(self) -> dict:
        return {
            "generator": bool(self.deepseek_api_key),
            "publisher": bool(self.github_token),
            "trigger": bool(self.vercel_token),
        }

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def get_settings() -> Settings:
    return Settings()
