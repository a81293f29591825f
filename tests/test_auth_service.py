"""
Tests for the auth service with Cognito mocked out.
"""
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from app.core.exceptions import (
    AccountDisabled,
    EmailAlreadyExists,
    Forbidden,
    InvalidCredentials,
    ServiceUnavailable,
    WeakPassword,
)
from app.crud import presence_crud, pulse_post_crud, user_crud
from app.model.pulse_reaction import PulseReaction
from app.schema.auth import UserLogin, UserRegister, VetProfileIn
from app.service.auth_service import AuthService
from app.service.pulse_service import PulseService
from app.session import get_session


def client_error(code, message="boom"):
    return ClientError({"Error": {"Code": code, "Message": message}}, "Operation")


@pytest.fixture
def cognito():
    mock = Mock()
    mock.sign_up.return_value = {"user_sub": "sub-1", "username": "cognito-new", "user_confirmed": False}
    mock.initiate_auth.return_value = {
        "id_token": "id-token",
        "access_token": "access-token",
        "refresh_token": None,
        "expires_in": 3600,
        "token_type": "Bearer",
    }
    return mock


@pytest.fixture
def service(db, cognito):
    return AuthService(db, cognito=cognito)


def test_register_farmer(db, service, cognito):
    user = service.register_user(UserRegister(email="f@example.com", password="Secret123!", full_name=" Farmer "))
    assert user.role == "farmer"
    assert user.full_name == "Farmer"
    assert user.cognito_username == "cognito-new"
    assert user.vet_profile is None
    cognito.sign_up.assert_called_once_with(email="f@example.com", password="Secret123!", name=" Farmer ")


def test_register_vet_creates_vet_profile(service):
    user = service.register_user(UserRegister(
        email="v@example.com",
        password="Secret123!",
        full_name="Dr. Vet",
        role="vet",
        vet_profile=VetProfileIn(specialties=["poultry"], clinic_name="Hill Clinic"),
    ))
    assert user.vet_profile.specialties == ["poultry"]
    assert user.vet_profile.clinic_name == "Hill Clinic"


def test_register_admin_rejected(service, cognito):
    with pytest.raises(Forbidden):
        service.register_user(UserRegister(email="a@example.com", password="x", full_name="A", role="admin"))
    cognito.sign_up.assert_not_called()


def test_register_maps_cognito_errors(service, cognito, make_user):
    make_user("taken")
    with pytest.raises(EmailAlreadyExists):
        service.register_user(UserRegister(email="taken@example.com", password="Secret123!", full_name="T"))

    cognito.sign_up.side_effect = client_error("UsernameExistsException")
    with pytest.raises(EmailAlreadyExists):
        service.register_user(UserRegister(email="other@example.com", password="Secret123!", full_name="O"))

    cognito.sign_up.side_effect = client_error("InvalidPasswordException", "Password too short")
    with pytest.raises(WeakPassword) as exc:
        service.register_user(UserRegister(email="weak@example.com", password="x", full_name="W"))
    assert exc.value.status_code == 400


def test_login_creates_session(service, make_user, fake_redis):
    user = make_user("farmer-9")
    response = service.login(UserLogin(email=user.email, password="Secret123!"))
    assert response.access_token == "id-token"
    assert response.user.role == "farmer"
    session = get_session("id-token")
    assert session["user_id"] == str(user.id)
    assert session["access_token"] == "access-token"


def test_login_rejects_bad_password(service, cognito, make_user, fake_redis):
    user = make_user("farmer-9")
    cognito.initiate_auth.side_effect = client_error("NotAuthorizedException")
    with pytest.raises(InvalidCredentials):
        service.login(UserLogin(email=user.email, password="wrong"))


def test_login_rejects_banned_user(service, make_user, fake_redis):
    user = make_user("farmer-9", is_banned=True)
    with pytest.raises(AccountDisabled) as exc:
        service.login(UserLogin(email=user.email, password="Secret123!"))
    assert exc.value.status_code == 403
    assert get_session("id-token") is None


def test_login_backfills_missing_profile(db, service, cognito, fake_redis):
    cognito.get_user.return_value = {"username": "cognito-ghost", "attributes": {"name": "Ghost"}}
    response = service.login(UserLogin(email="ghost@example.com", password="Secret123!"))
    assert response.user.full_name == "Ghost"
    assert user_crud.get_by_email(db, "ghost@example.com").role == "farmer"


def test_logout_signs_out_and_goes_offline(db, service, cognito, make_user, fake_redis):
    user = make_user("farmer-9")
    service.login(UserLogin(email=user.email, password="Secret123!"))
    cognito.global_sign_out.side_effect = client_error("NotAuthorizedException")

    assert service.logout("id-token", get_session("id-token")) is True
    assert get_session("id-token") is None
    assert presence_crud.get(db, user.id).online is False


def test_forgot_password_unknown_email_is_silent(service, cognito):
    service.forgot_password("nobody@example.com")
    cognito.forgot_password.assert_not_called()


def test_delete_account(db, service, cognito, make_user, fake_redis, png_bytes):
    user = make_user("vet-1", role="vet")
    PulseService(db, rate_limiter=lambda key, window: True).create_post(
        user.id, title="Vaccination tips", category="tips", photo=png_bytes, photo_content_type="image/png"
    )
    service.login(UserLogin(email=user.email, password="Secret123!"))
    cognito.initiate_auth.return_value = dict(cognito.initiate_auth.return_value, id_token="second-device")
    service.login(UserLogin(email=user.email, password="Secret123!"))
    user_id = user.id

    service.delete_account(user_id)

    cognito.admin_delete_user.assert_called_once_with("cognito-vet-1")
    db.expire_all()
    assert user_crud.get(db, user_id) is None
    assert PulseService(db).list_my_posts(user_id).total == 0
    assert get_session("id-token") is None
    assert get_session("second-device") is None


@pytest.fixture
def pulses(db):
    return PulseService(db, rate_limiter=lambda key, window: True)


def test_delete_account_releases_pulses_on_other_posts(db, service, make_user, fake_redis, pulses):
    author = make_user("vet-1", role="vet")
    reader = make_user("farmer-1")
    other = make_user("farmer-2")
    post = pulses.create_post(author.id, title="Calving season", category="tips")
    pulses.toggle_pulse(post.id, reader.id)
    pulses.toggle_pulse(post.id, other.id)
    reader_id = reader.id

    service.delete_account(reader_id)

    db.expire_all()
    assert pulse_post_crud.get_by_id(db, post_id=post.id).pulse_count == 1
    assert db.query(PulseReaction).filter(PulseReaction.user_id == reader_id).count() == 0
    assert db.query(PulseReaction).filter(PulseReaction.user_id == other.id).count() == 1


def test_delete_account_keeps_profile_when_cognito_fails(db, service, cognito, make_user, fake_redis, pulses):
    author = make_user("vet-1", role="vet")
    reader = make_user("farmer-1")
    post = pulses.create_post(author.id, title="Calving season", category="tips")
    pulses.toggle_pulse(post.id, reader.id)
    service.login(UserLogin(email=reader.email, password="Secret123!"))
    cognito.admin_delete_user.side_effect = client_error("InternalErrorException")
    reader_id = reader.id

    with pytest.raises(ServiceUnavailable):
        service.delete_account(reader_id)

    db.expire_all()
    assert user_crud.get(db, reader_id) is not None
    assert pulse_post_crud.get_by_id(db, post_id=post.id).pulse_count == 1
    assert db.query(PulseReaction).filter(PulseReaction.user_id == reader_id).count() == 1
    assert get_session("id-token") is not None


def test_delete_account_tolerates_missing_cognito_user(db, service, cognito, make_user, fake_redis):
    user = make_user("farmer-1")
    cognito.admin_delete_user.side_effect = client_error("UserNotFoundException")
    user_id = user.id

    service.delete_account(user_id)

    db.expire_all()
    assert user_crud.get(db, user_id) is None
