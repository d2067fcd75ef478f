"""
LLM provider integration: Groq client, rate limiter and prompts.
"""

from src.llm.groq_client import CompletionResult, GroqClient
from src.llm.prompts import SYSTEM_PROMPT, build_user_prompt
from src.llm.rate_limiter import RateLimiter, parse_duration

__all__ = [
    "CompletionResult",
    "GroqClient",
    "RateLimiter",
    "SYSTEM_PROMPT",
    "build_user_prompt",
    "parse_duration",
]
