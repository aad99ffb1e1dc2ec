"""
API Module
"""
from .main import create_api_app
from .middleware import RequestLoggingMiddleware, ContentSecurityPolicyMiddleware

__all__ = [
    "create_api_app",
    "RequestLoggingMiddleware",
    "ContentSecurityPolicyMiddleware",
]
