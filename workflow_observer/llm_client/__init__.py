from ..errors import ReasoningError
from .client import extract_message_text, request_chat_completion

__all__ = ["ReasoningError", "extract_message_text", "request_chat_completion"]
