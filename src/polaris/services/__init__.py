"""Service layer for Polaris: ledger, cancellation, model access and the agent run."""

from .agent_pipeline import AgentPipeline, PipelineOptions, RunRequest
from .cancellation import CancellationCoordinator
from .ledger import ConversationLedger
from .message_service import MessageService
from .model_client import AnthropicModel, ModelCapability, TextOutput, ToolCallOutput
from .title_generator import TitleGenerator

__all__ = [
    "AgentPipeline",
    "AnthropicModel",
    "CancellationCoordinator",
    "ConversationLedger",
    "MessageService",
    "ModelCapability",
    "PipelineOptions",
    "RunRequest",
    "TextOutput",
    "TitleGenerator",
    "ToolCallOutput",
]
