"""
Analysis Orchestrator
Drives one session: acquire the conversation, then run each selected analysis
"""

from typing import Callable, Iterable, List, Optional, Protocol

from clarity.config.settings import ANALYSIS_CONFIG
from clarity.errors import Cancelled, ClarityError, ConfigurationError, InvalidInput
from clarity.llm.prompts import ANALYSIS_TYPES, get_label
from clarity.models import (
    AnalysisSession,
    Conversation,
    LogEntry,
    ProcessingLog,
    SessionStatus,
)
from clarity.tools.cancellation import CancellationToken, run_cancellable
from clarity.tools.link_validator import looks_like_share_link
from clarity.tools.transcript_parser import format_transcript, parse_transcript
from clarity.tools.utils import Logger, truncate


class ConversationFetcher(Protocol):
    async def fetch(self, url: str) -> Conversation: ...


class StreamingAnalyzer(Protocol):
    async def analyze(
        self,
        conversation_text: str,
        analysis_type: str,
        title: Optional[str] = None,
        on_content: Optional[Callable[[str], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str: ...


class AnalysisOrchestrator:
    """
    Runs an analysis session

    Analysis types are processed strictly one after another, in selection
    order. A failure in one type is recorded in its log entry and the next
    type still runs; a cancellation stops the whole session.

    Args:
        client: Streaming analysis client
        fetcher: Share link fetcher
        history: Optional HistoryManager that receives completed sessions
        on_log: Called with every new or updated log entry
        on_content: Called with (analysis_type, accumulated_text) on every delta
    """

    def __init__(
        self,
        client: StreamingAnalyzer,
        fetcher: ConversationFetcher,
        history=None,
        on_log: Optional[Callable[[LogEntry], None]] = None,
        on_content: Optional[Callable[[str, str], None]] = None,
    ):
        self.client = client
        self.fetcher = fetcher
        self.history = history
        self.on_log = on_log
        self.on_content = on_content
        self.session: Optional[AnalysisSession] = None
        self.log = ProcessingLog()

    # ------------------------------------------------------------------
    # Log helpers
    # ------------------------------------------------------------------

    def _add_log(self, kind: str, message: str) -> LogEntry:
        entry = self.log.add(kind, message)
        if self.on_log:
            self.on_log(entry)
        return entry

    def _update_log(self, entry_id: str, kind: str, message: str) -> LogEntry:
        entry = self.log.update(entry_id, kind=kind, message=message)
        if self.on_log:
            self.on_log(entry)
        return entry

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_types(types: Iterable[str]) -> List[str]:
        """Deduplicate selected types keeping their order"""
        selected = []
        for analysis_type in types:
            if analysis_type not in selected:
                selected.append(analysis_type)

        if not selected:
            raise InvalidInput("Please select at least one analysis type")

        unknown = [t for t in selected if t not in ANALYSIS_TYPES]
        if unknown:
            raise InvalidInput(f"Unknown analysis type: {', '.join(unknown)}")
        return selected

    async def _acquire(self, input_text: str, cancel_token: Optional[CancellationToken]):
        """Fetch or parse the conversation; returns (conversation, analysis text)"""
        session = self.session

        if looks_like_share_link(input_text):
            session.advance(SessionStatus.FETCHING)
            self._add_log('info', 'Fetching conversation from ChatGPT...')
            conversation = await run_cancellable(self.fetcher.fetch(input_text.strip()), cancel_token)
            conversation_text = format_transcript(conversation.messages)
            self._add_log(
                'success',
                f'Fetched "{conversation.title}" ({len(conversation_text)} chars)'
            )
            return conversation, conversation_text

        text = input_text.strip()
        if not text:
            raise InvalidInput("Please paste your ChatGPT conversation")
        if len(text) < ANALYSIS_CONFIG['min_text_length']:
            raise InvalidInput("The conversation seems too short. Please paste the full conversation.")

        self._add_log('info', 'Processing provided text...')
        parsed = parse_transcript(text)
        if parsed.messages:
            title = truncate(parsed.messages[0].content, ANALYSIS_CONFIG['title_length'], suffix='')
            title += '...'
        else:
            title = 'Conversation Analysis'

        conversation = Conversation(title=title, messages=parsed.messages)
        if parsed.parsed:
            self._add_log('success', f'Parsed {len(parsed.messages)} messages from conversation')
        else:
            self._add_log('info', 'Processing as raw text (no structured messages detected)')
        return conversation, parsed.raw_text

    async def _analyze_type(
        self,
        analysis_type: str,
        conversation_text: str,
        title: str,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        session = self.session
        label = get_label(analysis_type)
        entry = self._add_log('processing', f'Analyzing: {label}...')

        def merge(content: str) -> None:
            session.merge_content(analysis_type, content)
            if self.on_content:
                self.on_content(analysis_type, content)

        try:
            content = await self.client.analyze(
                conversation_text,
                analysis_type,
                title=title,
                on_content=merge,
                cancel_token=cancel_token,
            )
        except Cancelled:
            self._update_log(entry.id, 'error', f'{label} analysis cancelled')
            raise
        except ConfigurationError as e:
            self._update_log(entry.id, 'error', f'{label}: {e.message}')
            raise
        except ClarityError as e:
            Logger.error(f"Analysis error for {analysis_type}: {e.message}")
            self._update_log(entry.id, 'error', f'{label}: {e.message}')
            return

        session.complete_result(analysis_type, content)
        self._update_log(entry.id, 'success', f'{label} analysis complete')

    async def run(
        self,
        input_text: str,
        types: Iterable[str],
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnalysisSession:
        """
        Run a full session

        Args:
            input_text: A share link or pasted conversation text
            types: Analysis type keys in the order they should run
            cancel_token: Shared token; cancelling it aborts the session

        Returns:
            The session in a terminal state (completed or error)
        """
        self.log = ProcessingLog()
        self.session = AnalysisSession()
        session = self.session

        try:
            selected = self.normalize_types(types)
            session.selected_types = selected

            conversation, conversation_text = await self._acquire(input_text, cancel_token)
            session.attach_conversation(conversation)
            session.advance(SessionStatus.ANALYZING)

            for analysis_type in selected:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                await self._analyze_type(analysis_type, conversation_text, conversation.title, cancel_token)

            self._add_log('success', 'All analyses complete!')
            session.advance(SessionStatus.COMPLETED)
            Logger.success(f"Session {session.id} completed with {len(session.results)} results")

        except Cancelled as e:
            Logger.warning("Analysis cancelled")
            self._add_log('info', 'Analysis cancelled')
            session.fail(e.message, cancelled=True)
            return session

        except ClarityError as e:
            Logger.error(f"Analysis failed: {e.message}")
            self._add_log('error', e.message)
            session.fail(e.message)
            return session

        if self.history is not None:
            self.history.save_session(session)

        return session
