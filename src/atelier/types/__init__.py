"""Type definitions for Atelier."""

from atelier.types.config import RetryConfig, RunConfig
from atelier.types.events import (
    AgentEvent,
    AssistantDelta,
    Divider,
    EvaluationReceived,
    RunFinished,
    ToolCallsAnnounced,
    ToolResultReady,
    ToolStatusChanged,
    UsageReported,
)
from atelier.types.messages import (
    ConversationMessage,
    EvaluationReport,
    LoopState,
    Role,
    RunResult,
    ToolCallRequest,
    ToolResult,
    ToolStatus,
    UsageInfo,
)
from atelier.types.patch import (
    EntityBoundary,
    EntityType,
    InvalidOperation,
    PatchOperation,
    PatchResult,
    ReplaceEntityOperation,
    RewriteOperation,
    UpdateOperation,
)
from atelier.types.providers import ModelInfo, ProviderAdapter, ProviderSpec, StreamEvent
from atelier.types.tools import JsonPatchArgs, ShellArgs, ToolContext, ToolDef, ToolParam
from atelier.types.vfs import (
    Checkpoint,
    CheckpointService,
    FileReadResult,
    VirtualFile,
    VirtualFileSystem,
)

__all__ = [
    "AgentEvent",
    "AssistantDelta",
    "Checkpoint",
    "CheckpointService",
    "ConversationMessage",
    "Divider",
    "EntityBoundary",
    "EntityType",
    "EvaluationReceived",
    "EvaluationReport",
    "FileReadResult",
    "InvalidOperation",
    "JsonPatchArgs",
    "LoopState",
    "ModelInfo",
    "PatchOperation",
    "PatchResult",
    "ProviderAdapter",
    "ProviderSpec",
    "ReplaceEntityOperation",
    "RetryConfig",
    "RewriteOperation",
    "Role",
    "RunConfig",
    "RunFinished",
    "RunResult",
    "ShellArgs",
    "StreamEvent",
    "ToolCallRequest",
    "ToolCallsAnnounced",
    "ToolContext",
    "ToolDef",
    "ToolParam",
    "ToolResult",
    "ToolResultReady",
    "ToolStatus",
    "ToolStatusChanged",
    "UpdateOperation",
    "UsageInfo",
    "UsageReported",
    "VirtualFile",
    "VirtualFileSystem",
]
