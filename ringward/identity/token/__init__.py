"""Token acquisition strategies, tried in order by InstanceIdentity."""

from ringward.identity.token.base import (
    RegistryTokenRetriever,
    ReplacingTokenRetriever,
    TokenRetriever,
)
from ringward.identity.token.dead import DeadTokenRetriever
from ringward.identity.token.manager import TokenManager
from ringward.identity.token.new import NewTokenRetriever
from ringward.identity.token.pregenerated import PreGeneratedTokenRetriever

__all__ = [
    "DeadTokenRetriever",
    "NewTokenRetriever",
    "PreGeneratedTokenRetriever",
    "RegistryTokenRetriever",
    "ReplacingTokenRetriever",
    "TokenManager",
    "TokenRetriever",
]
