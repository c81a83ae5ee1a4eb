from .loader import load_settings
from .schema import ApiConfig, CacheConfig, LoggingConfig, QuizConfig, Settings, TopicsConfig

__all__ = [
    "ApiConfig",
    "CacheConfig",
    "LoggingConfig",
    "QuizConfig",
    "Settings",
    "TopicsConfig",
    "load_settings",
]
