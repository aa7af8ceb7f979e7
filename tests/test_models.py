import pytest

from clarity.models import AnalysisSession, Conversation, ProcessingLog, SessionStatus


def test_session_moves_forward_and_stamps_completion():
    session = AnalysisSession()
    session.advance(SessionStatus.FETCHING)
    session.advance(SessionStatus.ANALYZING)
    assert session.completed_at is None

    session.advance(SessionStatus.COMPLETED)
    assert session.is_terminal
    assert session.completed_at is not None


def test_status_never_regresses():
    session = AnalysisSession()
    session.advance(SessionStatus.ANALYZING)
    with pytest.raises(ValueError):
        session.advance(SessionStatus.FETCHING)


def test_terminal_state_is_final():
    session = AnalysisSession()
    session.advance(SessionStatus.COMPLETED)
    with pytest.raises(ValueError):
        session.advance(SessionStatus.ERROR)


def test_fail_records_error_and_cancellation():
    session = AnalysisSession()
    session.fail("Analysis cancelled", cancelled=True)
    assert session.status == SessionStatus.ERROR
    assert session.error == "Analysis cancelled"
    assert session.cancelled is True


def test_conversation_is_attached_once():
    session = AnalysisSession()
    session.attach_conversation(Conversation(title="One"))
    with pytest.raises(ValueError):
        session.attach_conversation(Conversation(title="Two"))


def test_results_are_replaced_per_type():
    session = AnalysisSession(selected_types=["insights", "summary"])
    session.merge_content("summary", "A")
    first = session.results["summary"]
    session.merge_content("summary", "AB")
    session.complete_result("insights", "done")

    assert first.content == "A"
    assert session.results["summary"].content == "AB"
    assert [r.type for r in session.ordered_results()] == ["insights", "summary"]


def test_session_serialises_with_camel_case_keys():
    data = AnalysisSession(selected_types=["summary"]).model_dump(mode="json", by_alias=True)
    assert data["selectedTypes"] == ["summary"]
    assert data["status"] == "idle"
    assert "createdAt" in data


def test_processing_log_updates_in_place():
    log = ProcessingLog()
    entry = log.add("processing", "Analyzing: Summary...")
    other = log.add("info", "other")

    updated = log.update(entry.id, kind="success", message="Summary analysis complete")

    assert updated.id == entry.id
    assert [e.id for e in log.entries()] == [entry.id, other.id]
    assert log.get(entry.id).kind == "success"
    assert entry.kind == "processing"
    assert len(log) == 2
