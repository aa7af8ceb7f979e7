"""
Domain Models
Pydantic models for conversations, analysis sessions, logs and mind maps
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now()


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys for the web client"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Conversation
# ============================================================================

Role = Literal['user', 'assistant']


class Message(CamelModel):
    """A single chat message"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role: Role
    content: str


class Conversation(CamelModel):
    """A conversation recovered from a share link or pasted text"""

    id: str = Field(default_factory=_new_id)
    title: str = "Untitled Conversation"
    messages: List[Message] = Field(default_factory=list)
    url: str = ""
    fetched_at: datetime = Field(default_factory=_now)


# ============================================================================
# Analysis session
# ============================================================================

class AnalysisResult(CamelModel):
    """Accumulated output for one analysis type"""

    type: str
    content: str = ""
    completed_at: Optional[datetime] = None


LogKind = Literal['info', 'success', 'error', 'processing']


class LogEntry(CamelModel):
    """One line of the processing log"""

    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_now)
    kind: LogKind
    message: str


class ProcessingLog:
    """Append-only log whose entries can be replaced in place by id"""

    def __init__(self):
        self._entries: Dict[str, LogEntry] = {}

    def add(self, kind: str, message: str) -> LogEntry:
        entry = LogEntry(kind=kind, message=message)
        self._entries[entry.id] = entry
        return entry

    def update(self, entry_id: str, kind: Optional[str] = None, message: Optional[str] = None) -> LogEntry:
        current = self._entries[entry_id]
        changes = {}
        if kind is not None:
            changes['kind'] = kind
        if message is not None:
            changes['message'] = message
        updated = current.model_copy(update=changes)
        self._entries[entry_id] = updated
        return updated

    def get(self, entry_id: str) -> Optional[LogEntry]:
        return self._entries.get(entry_id)

    def entries(self) -> List[LogEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class SessionStatus(str, Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    ANALYZING = 'analyzing'
    COMPLETED = 'completed'
    ERROR = 'error'


_STATUS_RANK = {
    SessionStatus.IDLE: 0,
    SessionStatus.FETCHING: 1,
    SessionStatus.ANALYZING: 2,
    SessionStatus.COMPLETED: 3,
    SessionStatus.ERROR: 3,
}

TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.ERROR)


class AnalysisSession(CamelModel):
    """
    One end-to-end analysis run

    Results are keyed by analysis type so each type has at most one live
    record; every update replaces that record as a whole.
    """

    id: str = Field(default_factory=_new_id)
    conversation: Optional[Conversation] = None
    selected_types: List[str] = Field(default_factory=list)
    results: Dict[str, AnalysisResult] = Field(default_factory=dict)
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[str] = None
    cancelled: bool = False
    created_at: datetime = Field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(self, status: SessionStatus) -> None:
        """Move the session forward; status never regresses or leaves a terminal state"""
        status = SessionStatus(status)
        if status == self.status:
            return
        if self.is_terminal or _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise ValueError(f"Cannot move session from {self.status.value} to {status.value}")
        self.status = status
        if self.is_terminal:
            self.completed_at = _now()

    def attach_conversation(self, conversation: Conversation) -> None:
        if self.conversation is not None:
            raise ValueError("Session already has a conversation")
        self.conversation = conversation

    def merge_content(self, analysis_type: str, content: str) -> AnalysisResult:
        current = self.results.get(analysis_type)
        if current is None:
            result = AnalysisResult(type=analysis_type, content=content)
        else:
            result = current.model_copy(update={'content': content})
        self.results[analysis_type] = result
        return result

    def complete_result(self, analysis_type: str, content: str) -> AnalysisResult:
        result = AnalysisResult(type=analysis_type, content=content, completed_at=_now())
        self.results[analysis_type] = result
        return result

    def fail(self, message: str, cancelled: bool = False) -> None:
        self.error = message
        self.cancelled = cancelled
        if not self.is_terminal:
            self.advance(SessionStatus.ERROR)

    def ordered_results(self) -> List[AnalysisResult]:
        """Results in the order the types were selected"""
        return [self.results[key] for key in self.selected_types if key in self.results]


class HistoryItem(CamelModel):
    """Summary row shown in the history list"""

    id: str
    title: str
    url: str = ""
    analysis_types: List[str] = Field(default_factory=list)
    created_at: datetime
    preview: str = ""


# ============================================================================
# Mind map
# ============================================================================

MindMapNodeType = Literal['central', 'main', 'sub', 'action', 'insight']


class Position(BaseModel):
    x: float
    y: float


class MindMapNode(CamelModel):
    id: str
    label: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    type: MindMapNodeType = 'sub'
    position: Optional[Position] = None


class MindMapEdge(CamelModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None
    animated: bool = False


class MindMapData(CamelModel):
    """Node/edge graph; ids are unique and every edge joins existing nodes"""

    nodes: List[MindMapNode] = Field(default_factory=list)
    edges: List[MindMapEdge] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_graph(self):
        node_ids = set()
        for node in self.nodes:
            if node.id in node_ids:
                raise ValueError(f"Duplicate mind map node id: {node.id}")
            node_ids.add(node.id)
        edge_ids = set()
        for edge in self.edges:
            if edge.id in edge_ids:
                raise ValueError(f"Duplicate mind map edge id: {edge.id}")
            edge_ids.add(edge.id)
            if edge.source not in node_ids or edge.target not in node_ids:
                raise ValueError(f"Edge {edge.id} references an unknown node")
        return self
