"""
Zaruka - Personal Assistant Agent Core
======================================

The orchestration core of a personal chat assistant: it forwards user
messages to a language model, lets the model call tools, and returns a
reply.

This package provides:
- A token-budgeted conversation builder over unbounded history
- A bounded multi-round tool-calling loop, buffered and streaming
- Error classification with failover across providers/models
- Model handles for Anthropic and OpenAI-protocol providers
"""

__version__ = "1.0.0"
