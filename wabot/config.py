from typing import Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class CompletionConfig(BaseModel, frozen=True):
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    max_tokens: int = 500
    temperature: float = 0.7
    timeout_seconds: float = 30.0


class DispatchConfig(BaseModel, frozen=True):
    access_token: Optional[str] = None
    phone_number_id: Optional[str] = None
    api_version: str = "v23.0"
    api_base_url: str = "https://graph.facebook.com"
    timeout_seconds: float = 30.0

    @property
    def messages_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/{self.api_version}/{self.phone_number_id}/messages"


class AlertConfig(BaseModel, frozen=True):
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    timeout_seconds: float = 10.0


class Settings(BaseSettings):
    database_url: str = "sqlite:///./whatsapp.db"
    debug: bool = False
    log_level: str = "INFO"

    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    completion_max_tokens: int = 500
    completion_temperature: float = 0.7
    completion_timeout_seconds: float = 30.0
    completion_use_history: bool = True
    history_limit: int = 20

    whatsapp_access_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_api_version: str = "v23.0"
    whatsapp_api_base_url: str = "https://graph.facebook.com"
    dispatch_timeout_seconds: float = 30.0

    verify_token: Optional[str] = None

    pipeline_worker_enabled: bool = True
    pipeline_workers: int = 4
    pipeline_queue_size: int = 100
    pipeline_drain_seconds: float = 5.0
    dedup_enabled: bool = True

    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"

    def completion_config(self) -> CompletionConfig:
        return CompletionConfig(
            api_key=self.openai_api_key,
            base_url=self.openai_base_url,
            model=self.openai_model,
            max_tokens=self.completion_max_tokens,
            temperature=self.completion_temperature,
            timeout_seconds=self.completion_timeout_seconds,
        )

    def dispatch_config(self) -> DispatchConfig:
        return DispatchConfig(
            access_token=self.whatsapp_access_token,
            phone_number_id=self.whatsapp_phone_number_id,
            api_version=self.whatsapp_api_version,
            api_base_url=self.whatsapp_api_base_url,
            timeout_seconds=self.dispatch_timeout_seconds,
        )

    def alert_config(self) -> AlertConfig:
        return AlertConfig(bot_token=self.alert_bot_token, chat_id=self.alert_chat_id)


settings = Settings()
