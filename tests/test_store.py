import pytest

from mockinterview.core.exceptions import ConfigurationError, NotFoundError
from mockinterview.schemas.session import SessionCreate

NEW_SESSION = SessionCreate(user_id="ignored", job_title="QA Engineer", job_description="Testing")


def test_store_not_ready_without_config(context):
    store = context.store("user-1")
    assert not store.is_ready()
    with pytest.raises(ConfigurationError):
        store.create_session(NEW_SESSION)
    assert store.fetch_sessions() == []


def test_store_requires_user_id(context, configured):
    store = context.store("")
    assert not store.is_ready()
    with pytest.raises(ConfigurationError) as exc:
        store.create_session(NEW_SESSION)
    assert exc.value.message == "User ID is required"


def test_store_tracks_sessions(context, configured):
    store = context.store("user-1")
    assert store.is_ready()

    first = store.create_session(NEW_SESSION)
    second = store.create_session(NEW_SESSION)
    assert first.user_id == "user-1"
    assert store.current_session.id == second.id
    assert [s.id for s in store.sessions] == [first.id, second.id]

    store.set_current_session(first.id)
    question_id = store.add_question(first.id, "Why testing?")
    updated = store.add_answer(first.id, question_id, "I like breaking things")
    assert updated.questions[0].answer == "I like breaking things"
    assert store.current_session.questions == updated.questions

    store.delete_session(first.id)
    assert store.current_session is None
    assert [s.id for s in store.fetch_sessions()] == [second.id]
    with pytest.raises(NotFoundError):
        store.get_session(first.id)
