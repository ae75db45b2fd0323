import pytest

from app.comment_service import CommentService
from tests.helpers import make_member, make_trainer, make_training_session, make_user


@pytest.fixture
def comments(session, cache):
    return CommentService(session, cache)


@pytest.fixture
def training_session(session):
    trainer = make_trainer(session)
    member = make_member(session)
    return make_training_session(session, trainer, member)


def test_add_and_list_comments_in_order(session, comments, training_session):
    author = make_user(session, email="coach@example.com", role="trainer")

    first = comments.add_comment(
        {"sessionId": training_session.id, "comment": "Warm-up went well"}, user_id=author.id
    )
    second = comments.add_comment(
        {
            "sessionId": training_session.id,
            "comment": "Knee pain on squats",
            "commentType": "issue",
            "isPrivate": True,
        },
        user_id=author.id,
    )

    assert first.ok and second.ok
    assert first.data.comment_type == "note"
    assert first.data.user_id == author.id

    listed = comments.list_comments(training_session.id).data
    assert [c.comment for c in listed] == ["Warm-up went well", "Knee pain on squats"]


def test_private_comments_hidden_when_requested(comments, training_session):
    comments.add_comment({"sessionId": training_session.id, "comment": "Public note"})
    comments.add_comment(
        {"sessionId": training_session.id, "comment": "Staff only", "isPrivate": True}
    )

    visible = comments.list_comments(training_session.id, include_private=False).data
    assert [c.comment for c in visible] == ["Public note"]
    # the cached entry still holds both
    assert len(comments.list_comments(training_session.id).data) == 2


def test_add_comment_requires_existing_session(comments):
    response = comments.add_comment(
        {"sessionId": "00000000-0000-0000-0000-000000000000", "comment": "Hello"}
    )

    assert response.error == "Training session not found"
    assert response.code == "not_found"


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"comment": ""}, "comment: Comment is required"),
        ({"comment": "x" * 1001}, "comment: Comment must be less than 1000 characters"),
        ({"comment": "ok", "commentType": "rant"}, "commentType:"),
    ],
)
def test_add_comment_validation(comments, training_session, payload, message):
    response = comments.add_comment({"sessionId": training_session.id, **payload})

    assert response.code == "validation_error"
    assert response.error.startswith(message)


def test_update_comment_by_author(session, comments, training_session):
    author = make_user(session, email="coach@example.com", role="trainer")
    created = comments.add_comment(
        {"sessionId": training_session.id, "comment": "Draft"}, user_id=author.id
    ).data
    comments.list_comments(training_session.id)

    response = comments.update_comment(
        {"id": created.id, "comment": "Final", "commentType": "progress"}, user_id=author.id
    )

    assert response.ok, response.error
    assert [c.comment for c in comments.list_comments(training_session.id).data] == ["Final"]


def test_other_users_cannot_edit_or_delete(session, comments, training_session):
    author = make_user(session, email="coach@example.com", role="trainer")
    stranger = make_user(session, email="other@example.com", role="trainer")
    created = comments.add_comment(
        {"sessionId": training_session.id, "comment": "Mine"}, user_id=author.id
    ).data

    update = comments.update_comment({"id": created.id, "comment": "Hijack"}, user_id=stranger.id)
    delete = comments.delete_comment(created.id, user_id=stranger.id)

    assert update.code == delete.code == "permission_denied"
    assert comments.list_comments(training_session.id).data[0].comment == "Mine"


def test_delete_comment(comments, training_session):
    created = comments.add_comment({"sessionId": training_session.id, "comment": "Bye"}).data
    assert len(comments.list_comments(training_session.id).data) == 1

    response = comments.delete_comment(created.id)

    assert response.ok and response.data is True
    assert comments.list_comments(training_session.id).data == []


def test_delete_missing_comment(comments):
    response = comments.delete_comment("00000000-0000-0000-0000-000000000000")

    assert response.error == "Comment not found"
