"""
Models package for Polaris persistence.

This package provides data models and CRUD operations for:
- Projects: Ownership, display name, import/export status
- FileNodes: Files and folders of each project tree
- Conversations: Conversation threads within projects
- Messages: User and assistant messages with processing status
- StepCheckpoints: Completed durable steps of agent runs
- ToolCallLogs: Audit trail of tool executions
"""

from .project import ExportStatus, ImportStatus, Project
from .file_node import FileNode, NodeKind
from .conversation import Conversation
from .message import Message, MessageRole, MessageStatus
from .step_checkpoint import StepCheckpoint
from .tool_call import ToolCallLog

__all__ = [
    'Project',
    'ImportStatus',
    'ExportStatus',
    'FileNode',
    'NodeKind',
    'Conversation',
    'Message',
    'MessageRole',
    'MessageStatus',
    'StepCheckpoint',
    'ToolCallLog',
]
