"""
History storage
Key-value persistence for past analysis sessions using SQLAlchemy
"""

import json
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import Column, DateTime, String, Text, create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clarity.config.settings import HISTORY_CONFIG, get_database_url
from clarity.models import AnalysisSession, HistoryItem
from clarity.tools.utils import Logger, truncate

# SQLAlchemy Base
Base = declarative_base()


# ============================================================================
# Key-value stores
# ============================================================================

class KeyValueStore(Protocol):
    """Minimal string store the history manager persists through"""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """Process-local store, used by tests and as a fallback"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> List[str]:
        return list(self._data.keys())


class KeyValueEntry(Base):
    """One stored value"""
    __tablename__ = 'kv_entries'

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SqlStore:
    """
    Key-value store backed by a SQL database

    Args:
        database_url: SQLAlchemy URL. If None, uses config/settings.py (reads from .env)
    """

    def __init__(self, database_url: Optional[str] = None):
        if database_url is None:
            database_url = get_database_url()

        self.database_url = database_url
        self.engine = create_engine(database_url, pool_pre_ping=True, echo=False)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.create_tables()

    def create_tables(self):
        """Create the table if it doesn't exist"""
        Base.metadata.create_all(bind=self.engine, checkfirst=True)

    def test_connection(self) -> bool:
        """
        Test database connection

        Returns:
            True if connection successful, False otherwise
        """
        try:
            with self.SessionLocal() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            Logger.warning(f"History database unreachable: {e}")
            return False

    def get(self, key: str) -> Optional[str]:
        with self.SessionLocal() as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self.SessionLocal() as session:
            entry = session.get(KeyValueEntry, key)
            if entry:
                entry.value = value
                entry.updated_at = datetime.utcnow()
            else:
                session.add(KeyValueEntry(key=key, value=value))
            session.commit()

    def delete(self, key: str) -> None:
        with self.SessionLocal() as session:
            session.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            session.commit()

    def clear(self) -> None:
        with self.SessionLocal() as session:
            session.query(KeyValueEntry).delete()
            session.commit()


# ============================================================================
# History manager
# ============================================================================

class HistoryManager:
    """
    Most-recent-first list of past sessions plus one full session blob each

    The list is bounded to HISTORY_CONFIG['max_items'] entries.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.history_key = HISTORY_CONFIG['history_key']
        self.session_prefix = HISTORY_CONFIG['session_prefix']
        self.max_items = HISTORY_CONFIG['max_items']

    def _session_key(self, session_id: str) -> str:
        return f"{self.session_prefix}{session_id}"

    def _write(self, items: List[HistoryItem]) -> None:
        payload = json.dumps([item.model_dump(mode='json', by_alias=True) for item in items])
        self.store.set(self.history_key, payload)

    def list(self) -> List[HistoryItem]:
        """Load the history list; unreadable data yields an empty list"""
        raw = self.store.get(self.history_key)
        if not raw:
            return []
        try:
            return [HistoryItem.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            Logger.error(f"Failed to load history: {e}")
            return []

    def add(self, session: AnalysisSession) -> Optional[HistoryItem]:
        """Put a session at the top of the history list"""
        if session.conversation is None or not session.results:
            return None

        results = session.ordered_results() or list(session.results.values())
        preview = truncate(results[0].content, HISTORY_CONFIG['preview_length'], suffix='')

        item = HistoryItem(
            id=session.id,
            title=session.conversation.title or 'Untitled Conversation',
            url=session.conversation.url,
            analysis_types=list(session.selected_types),
            created_at=session.created_at,
            preview=preview,
        )

        items = [existing for existing in self.list() if existing.id != session.id]
        items = [item] + items
        for dropped in items[self.max_items:]:
            self.store.delete(self._session_key(dropped.id))
        self._write(items[:self.max_items])
        return item

    def save_session(self, session: AnalysisSession) -> Optional[HistoryItem]:
        """Store the full session and list it in history; sessions without results are skipped"""
        if session.conversation is None or not session.results:
            return None
        self.store.set(self._session_key(session.id), session.model_dump_json(by_alias=True))
        return self.add(session)

    def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        raw = self.store.get(self._session_key(session_id))
        if not raw:
            return None
        try:
            return AnalysisSession.model_validate_json(raw)
        except ValidationError as e:
            Logger.error(f"Failed to load session {session_id}: {e}")
            return None

    def delete(self, session_id: str) -> bool:
        """Remove a history item and its session; False if it was not listed"""
        items = self.list()
        remaining = [item for item in items if item.id != session_id]
        self._write(remaining)
        self.store.delete(self._session_key(session_id))
        return len(remaining) != len(items)

    def clear(self) -> None:
        for item in self.list():
            self.store.delete(self._session_key(item.id))
        self._write([])
