"""
Pydantic Schemas for Request/Response Models
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from clarity.llm.prompts import format_conversation
from clarity.models import (
    AnalysisResult,
    AnalysisSession,
    CamelModel,
    Conversation,
    HistoryItem,
    LogEntry,
    Message,
    MindMapData,
)


class FetchChatRequest(CamelModel):
    """Request model for the share link endpoint"""
    url: Optional[str] = Field(None, description="ChatGPT share link")


class FetchChatResponse(CamelModel):
    """Response model for the share link endpoint"""
    success: bool
    conversation: Optional[Conversation] = None
    error: Optional[str] = None


class AnalyzeRequest(CamelModel):
    """Request model for the streaming analysis endpoint"""
    conversation_text: Optional[str] = Field(None, description="Conversation as plain text")
    conversation: Optional[Union[str, List[Message]]] = Field(
        None, description="Conversation text, or the fetched message list"
    )
    analysis_type: Optional[str] = Field(None, description="Analysis type key")
    conversation_title: Optional[str] = Field(None, description="Title woven into the prompt")

    @property
    def text(self) -> Optional[str]:
        if self.conversation_text:
            return self.conversation_text
        if isinstance(self.conversation, list):
            return format_conversation(self.conversation) or None
        return self.conversation


class MindMapRequest(CamelModel):
    """Request model for the mind map endpoint"""
    results: List[AnalysisResult] = Field(default_factory=list)
    conversation_title: str = "Untitled Conversation"


class MindMapResponse(CamelModel):
    success: bool
    mind_map: MindMapData


class SessionRequest(CamelModel):
    """Request model for a full server-side analysis session"""
    input: str = Field(..., description="Share link or pasted conversation")
    analysis_types: Optional[List[str]] = Field(None, description="Types to run, in order")


class SessionResponse(CamelModel):
    session: AnalysisSession
    logs: List[LogEntry]


class AnalysisTypeInfo(CamelModel):
    key: str
    label: str
    icon: str
    description: str
    default: bool = False


class AnalysisTypesResponse(CamelModel):
    types: List[AnalysisTypeInfo]


class HistoryListResponse(CamelModel):
    items: List[HistoryItem]


class DeleteResponse(CamelModel):
    """Response for delete operations"""
    success: bool
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    details: Optional[Dict[str, Any]] = None
