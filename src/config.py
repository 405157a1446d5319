"""Configuration management for the recorded-event processing service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.recording.models import ProcessingOptions


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_json: bool = Field(False, description="Render logs as JSON instead of console output")

    # Processing defaults for new recording sessions
    recorder_deduplicate_events: bool = Field(True, description="Drop duplicate events")
    recorder_merge_consecutive_events: bool = Field(True, description="Merge keydown+input and fast clicks")
    recorder_filter_noise_events: bool = Field(True, description="Drop mouse moves, resizes and empty events")
    recorder_group_related_events: bool = Field(True, description="Group form interactions")
    recorder_optimize_selectors: bool = Field(False, description="Reserved for selector optimization")
    recorder_add_smart_waits: bool = Field(True, description="Insert waits for pauses over one second")
    recorder_max_event_buffer_size: int = Field(10000, gt=0, description="Raw event buffer capacity")
    recorder_processing_batch_size: int = Field(100, gt=0, description="Pending events that trigger a batch")
    recorder_max_sessions: int = Field(100, gt=0, description="Recording sessions kept in memory")

    # Server Settings
    server_host: str = Field("0.0.0.0", description="Server host")
    server_port: int = Field(8000, description="Server port")

    def processing_options(self) -> ProcessingOptions:
        """Build processing options from the recorder defaults."""
        return ProcessingOptions(
            deduplicate_events=self.recorder_deduplicate_events,
            merge_consecutive_events=self.recorder_merge_consecutive_events,
            filter_noise_events=self.recorder_filter_noise_events,
            group_related_events=self.recorder_group_related_events,
            optimize_selectors=self.recorder_optimize_selectors,
            add_smart_waits=self.recorder_add_smart_waits,
            max_event_buffer_size=self.recorder_max_event_buffer_size,
            processing_batch_size=self.recorder_processing_batch_size,
        )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
