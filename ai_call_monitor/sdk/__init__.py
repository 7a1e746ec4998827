"""
SDK for AI Call Monitor.

Provides the process-wide interceptor for outbound httpx calls.
"""

from .interceptor import CallInterceptor, InterceptorState

__all__ = ["CallInterceptor", "InterceptorState"]
