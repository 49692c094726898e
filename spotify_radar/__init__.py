"""Spotify Web API session core.

Authenticates against the accounts service (authorization code grant with
client secret), keeps the access/refresh token session alive and issues the
read-only catalog requests the app needs.
"""

from .auth import AuthClient, AuthGrant, ClientCredentials
from .client import ApiGateway
from .endpoints import ENDPOINTS, EndpointSpec
from .factory import Services, build_services
from .session import SessionManager, SessionState
from .token_manager import Session, SessionCache, Token, TokenStore

__all__ = [
    "ApiGateway",
    "AuthClient",
    "AuthGrant",
    "ClientCredentials",
    "ENDPOINTS",
    "EndpointSpec",
    "Services",
    "Session",
    "SessionCache",
    "SessionManager",
    "SessionState",
    "Token",
    "TokenStore",
    "build_services",
]
