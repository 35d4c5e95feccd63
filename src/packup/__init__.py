"""packup application settings and logging."""

from .config import ChatbotConfig, Config, ServerConfig, SessionConfig
from .logger import setup_logger

__all__ = ["ChatbotConfig", "Config", "ServerConfig", "SessionConfig", "setup_logger"]
