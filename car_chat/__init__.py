"""Car Chat - car selection assistant streaming LLM answers over SSE."""

__version__ = "1.0.0"

from .api import app, create_app  # noqa: E402
from .chat import ChatService  # noqa: E402
from .llm import LLMService  # noqa: E402
from .orchestrator import MessageOrchestrator  # noqa: E402
from .providers import create_llm_provider  # noqa: E402
from .streaming import SSEStream  # noqa: E402

__all__ = [
    "ChatService",
    "LLMService",
    "MessageOrchestrator",
    "SSEStream",
    "app",
    "create_app",
    "create_llm_provider",
]
