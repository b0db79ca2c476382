"""
Application layer for the token workflow orchestration pipeline.

Contains the pipeline engine, the stage executors and context construction.
"""

from tokenworkflow.application.context_builder import (
    build_context,
    context_from_headers,
    response_headers,
)
from tokenworkflow.application.log_sanitizer import sanitize_log_input
from tokenworkflow.application.pipeline import OrchestrationPipeline

__all__ = [
    "OrchestrationPipeline",
    "build_context",
    "context_from_headers",
    "response_headers",
    "sanitize_log_input",
]
