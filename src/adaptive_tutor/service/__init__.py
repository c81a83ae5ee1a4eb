from .auth import CredentialProvider, EnvCredentialProvider, StaticCredentialProvider
from .client import ContentServiceClient, LatestQuizResult, TopicSaveResult

__all__ = [
    "ContentServiceClient",
    "CredentialProvider",
    "EnvCredentialProvider",
    "LatestQuizResult",
    "StaticCredentialProvider",
    "TopicSaveResult",
]
