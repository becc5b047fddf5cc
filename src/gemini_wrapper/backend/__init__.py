"""Execution engine implementations."""

from gemini_wrapper.backend.base import DelegatedRunner, DelegationRequest, ExecutionResult
from gemini_wrapper.backend.cli_backend import GeminiCliBackend, build_command_args

__all__ = [
    "DelegatedRunner",
    "DelegationRequest",
    "ExecutionResult",
    "GeminiCliBackend",
    "build_command_args",
]
