import pytest
from werkzeug.security import check_password_hash

from app.user_service import UserService
from tests.helpers import make_trainer, make_user


@pytest.fixture
def users(session, cache):
    return UserService(session, cache)


def test_authenticate_success(session, users):
    admin = make_user(session)

    response = users.authenticate("admin@example.com", "Secret123")

    assert response.ok
    assert response.data is admin


@pytest.mark.parametrize(
    "email, password",
    [
        ("admin@example.com", "wrong-password"),
        ("nobody@example.com", "Secret123"),
    ],
)
def test_authenticate_failure_is_generic(session, users, email, password):
    make_user(session)

    response = users.authenticate(email, password)

    assert response.data is None
    assert response.error == "Invalid email or password"
    assert response.code == "permission_denied"


def test_authenticate_user_without_password(session, users):
    make_trainer(session, email="coach@example.com")

    assert users.authenticate("coach@example.com", "Secret123").error == "Invalid email or password"


def test_authenticate_validates_input(users):
    response = users.authenticate("not-an-email", "x")

    assert response.code == "validation_error"
    assert response.error == "email: Invalid email format"


def test_list_users_by_role(session, users):
    make_user(session)
    make_trainer(session, first_name="Bea", email="bea@example.com")
    make_trainer(session, first_name="Al", email="al@example.com")

    assert [u.first_name for u in users.list_users().data] == ["Ada", "Al", "Bea"]
    assert [u.first_name for u in users.list_trainers().data] == ["Al", "Bea"]


def test_update_profile(session, users):
    admin = make_user(session)
    assert users.get_user(admin.id).data.first_name == "Ada"

    response = users.update_profile(
        admin.id,
        {"firstName": "Grace", "lastName": "Hopper", "email": "grace@example.com", "phone": "555-010-0100"},
    )

    assert response.ok, response.error
    assert users.get_user(admin.id).data.first_name == "Grace"
    assert users.get_user(admin.id).data.phone == "555-010-0100"


def test_update_profile_rejects_bad_name(session, users):
    admin = make_user(session)

    response = users.update_profile(
        admin.id, {"firstName": "R2D2", "lastName": "Droid", "email": "r2@example.com"}
    )

    assert response.error == "firstName: First name contains invalid characters"


def test_change_password(session, users):
    admin = make_user(session)

    response = users.change_password(
        admin.id,
        {"currentPassword": "Secret123", "newPassword": "Better456", "confirmPassword": "Better456"},
    )

    assert response.ok, response.error
    assert check_password_hash(admin.password_hash, "Better456")
    assert users.authenticate("admin@example.com", "Better456").ok


def test_change_password_wrong_current(session, users):
    admin = make_user(session)

    response = users.change_password(
        admin.id,
        {"currentPassword": "Nope1234", "newPassword": "Better456", "confirmPassword": "Better456"},
    )

    assert response.error == "currentPassword: Current password is incorrect"
    assert users.authenticate("admin@example.com", "Secret123").ok


@pytest.mark.parametrize(
    "new, confirm, message",
    [
        ("short", "short", "newPassword: Password must be at least 8 characters"),
        ("alllowercase1", "alllowercase1", "newPassword: Password must contain at least one"),
        ("Better456", "Better789", "confirmPassword: Passwords don't match"),
    ],
)
def test_change_password_validation(session, users, new, confirm, message):
    admin = make_user(session)

    response = users.change_password(
        admin.id, {"currentPassword": "Secret123", "newPassword": new, "confirmPassword": confirm}
    )

    assert response.error.startswith(message)


def test_set_password(session, users):
    trainer = make_trainer(session, email="coach@example.com")

    assert users.set_password(trainer.id, "Coach1234").ok
    assert users.authenticate("coach@example.com", "Coach1234").ok


def test_get_missing_user(users):
    assert users.get_user("missing").error == "User not found"
