"""Atelier — agent execution engine and deterministic patch engine.

Usage:
    import atelier

    vfs = atelier.MemoryFileSystem({"demo": {"/index.html": "<h1>Hi</h1>"}})
    loop = atelier.AgentLoop(
        atelier.create_provider("openrouter"), vfs, atelier.RunConfig(project_id="demo"),
    )

    async for event in loop.stream("Make the heading blue"):
        match event:
            case atelier.AssistantDelta(text=t):
                print(t, end="")
            case atelier.RunFinished(result=r):
                print(f"Done: {r.summary}")
"""

from atelier.core.loop import AgentLoop
from atelier.errors import (
    AtelierError,
    ConfigError,
    ProviderError,
    RetryExhaustedError,
    ToolArgumentError,
    ToolSchemaError,
    VfsError,
)
from atelier.patch import apply_operations, apply_patch_to_vfs
from atelier.providers.registry import create_provider
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
from atelier.types.messages import EvaluationReport, LoopState, RunResult
from atelier.vfs import MemoryFileSystem, SnapshotCheckpointStore, VfsShell

__version__ = "0.1.0"

__all__ = [
    # Core API
    "AgentLoop",
    "create_provider",
    "apply_operations",
    "apply_patch_to_vfs",
    # Reference VFS
    "MemoryFileSystem",
    "SnapshotCheckpointStore",
    "VfsShell",
    # Config and results
    "EvaluationReport",
    "LoopState",
    "RetryConfig",
    "RunConfig",
    "RunResult",
    # Events
    "AgentEvent",
    "AssistantDelta",
    "Divider",
    "EvaluationReceived",
    "RunFinished",
    "ToolCallsAnnounced",
    "ToolResultReady",
    "ToolStatusChanged",
    "UsageReported",
    # Errors
    "AtelierError",
    "ConfigError",
    "ProviderError",
    "RetryExhaustedError",
    "ToolArgumentError",
    "ToolSchemaError",
    "VfsError",
]
