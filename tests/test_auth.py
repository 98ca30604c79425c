from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from jose import jwt

from odrlab.main import create_app
from odrlab.models.innovator import Innovator
from odrlab.models.mentor import Mentor
from odrlab.models.other import Other
from odrlab.models.user import User
from odrlab.security import ACCESS_AUDIENCE

from tests.conftest import ADMIN_EMAIL, ADMIN_PASSWORD, PASSWORD, auth_headers, login, signup


def test_signup_then_login_end_to_end(client, count_rows):
    response = client.post(
        "/api/auth/signup", json={"name": "A", "email": "a@x.com", "password": PASSWORD}
    )
    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "a@x.com"
    assert user["userRole"] == "OTHER"
    assert "password" not in user
    assert count_rows(Other, Other.user_id == user["id"]) == 1
    client.cookies.clear()

    response = client.post("/api/auth/login", json={"email": "A@X.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert "password" not in body["user"]
    assert "token" not in body
    for cookie in ("access_token", "refresh_token", "odrindia_session"):
        assert cookie in response.cookies


def test_signup_rejects_duplicate_email(client):
    signup(client, "dup@x.com")
    response = client.post(
        "/api/auth/signup", json={"name": "Again", "email": "DUP@x.com", "password": PASSWORD}
    )
    assert response.status_code == 409


def test_signup_validation_errors_are_400_with_detail(client):
    response = client.post("/api/auth/signup", json={"name": "Shorty", "email": "s@x.com", "password": "short"})
    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Invalid input"
    assert any(error["loc"][-1] == "password" for error in body["errors"])


def test_student_signup_creates_innovator_extension(client, count_rows):
    _, user = signup(
        client, "student@x.com", userType="student",
        studentInstitute="National Law School", highestEducation="LLB",
    )
    assert user["userRole"] == "INNOVATOR"
    assert user["institution"] == "National Law School"
    assert user["highestEducation"] == "LLB"
    assert count_rows(Innovator, Innovator.user_id == user["id"]) == 1
    assert count_rows(Other, Other.user_id == user["id"]) == 0


def test_admin_role_cannot_be_self_assigned(client):
    _, user = signup(client, "sneaky@x.com", userRole="ADMIN")
    assert user["userRole"] == "OTHER"


def test_mentor_signup_starts_as_pending_other(client, count_rows):
    _, user = signup(client, "mentor@x.com", userType="law", lawFirm="Shah & Co")
    assert user["userRole"] == "OTHER"
    assert user["hasMentorApplication"] is True
    assert user["isMentorApproved"] is False
    assert user["role"] == "Pending LEGAL EXPERT approval"
    assert count_rows(Mentor, Mentor.user_id == user["id"], Mentor.approved.is_(False)) == 1
    assert count_rows(Other, Other.user_id == user["id"]) == 1


def test_login_failures_share_one_message(client, count_rows):
    signup(client, "known@x.com")

    wrong_password = client.post("/api/auth/login", json={"email": "known@x.com", "password": "not-the-one"})
    unknown_user = client.post("/api/auth/login", json={"email": "nobody@x.com", "password": PASSWORD})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json()["detail"] == unknown_user.json()["detail"] == "Invalid email or password."


def test_google_signin_creates_innovator_needing_completion(client, count_rows):
    response = client.post(
        "/api/auth/google-signin",
        json={"email": "g@x.com", "name": "Google User", "image": "https://lh3.googleusercontent.com/a/pic"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["needsProfileCompletion"] is True
    assert body["user"]["userRole"] == "INNOVATOR"
    assert body["user"]["imageAvatar"].startswith("https://lh3.googleusercontent.com")
    assert count_rows(User, User.email == "g@x.com", User.password.is_(None)) == 1
    assert count_rows(Innovator) == 1
    headers = auth_headers(response)
    client.cookies.clear()

    # Google-only accounts cannot log in with a password
    response = client.post("/api/auth/login", json={"email": "g@x.com", "password": PASSWORD})
    assert response.status_code == 401

    response = client.post(
        "/api/auth/complete-profile",
        json={"contactNumber": "9999999999", "city": "Pune", "country": "India",
              "userType": "faculty", "institution": "IIT Bombay"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["user"]["userRole"] == "FACULTY"
    assert response.json()["user"]["institution"] == "IIT Bombay"
    assert count_rows(Innovator) == 0

    client.cookies.clear()
    response = client.post("/api/auth/google-signin", json={"email": "g@x.com", "name": "Google User"})
    assert response.json()["needsProfileCompletion"] is False


def test_complete_profile_requires_authentication(client):
    response = client.post(
        "/api/auth/complete-profile",
        json={"contactNumber": "123456", "city": "Delhi", "country": "India"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_session_reports_state_and_expiry(client):
    assert client.get("/api/auth/session").status_code == 401
    assert client.get("/api/auth/session").json() == {"authenticated": False}

    headers, _ = signup(client, "session@x.com", userType="student")
    response = client.get("/api/auth/session", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["authenticated"] is True
    assert body["user"]["email"] == "session@x.com"
    # No institution / education given at signup
    assert body["needsProfileCompletion"] is True
    assert 0 < body["expiresIn"] <= 15 * 60
    assert body["expiresAt"]


def test_invalid_bearer_token_is_rejected(client):
    response = client.get("/api/user/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


def test_cookie_authentication_works_without_header(client):
    client.post("/api/auth/signup", json={"name": "Cookie", "email": "c@x.com", "password": PASSWORD})
    response = client.get("/api/user/profile")
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "c@x.com"


def test_refresh_rotates_cookies_and_logout_clears_them(client):
    client.post("/api/auth/signup", json={"name": "Refresh", "email": "r@x.com", "password": PASSWORD})

    response = client.post("/api/auth/refresh-token")
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "r@x.com"
    assert "access_token" in response.cookies

    response = client.post("/api/auth/logout")
    assert response.status_code == 200
    client.cookies.clear()
    assert client.post("/api/auth/refresh-token").status_code == 401


def test_access_token_cannot_be_used_as_refresh_token(client):
    headers = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    access = headers["Authorization"].split(" ", 1)[1]
    client.cookies.set("refresh_token", access)
    assert client.post("/api/auth/refresh-token").status_code == 401


def test_markup_only_name_is_rejected_not_blanked(client, count_rows):
    response = client.post(
        "/api/auth/signup", json={"name": "<>", "email": "blank@x.com", "password": PASSWORD}
    )
    assert response.status_code == 400
    assert any(error["loc"][-1] == "name" for error in response.json()["errors"])
    assert count_rows(User, User.email == "blank@x.com") == 0

    headers, _ = signup(client, "keeps-name@x.com", name="Kept")
    response = client.put("/api/user/profile", json={"name": "<script>x</script>"}, headers=headers)
    assert response.status_code == 400
    assert client.get("/api/user/profile", headers=headers).json()["user"]["name"] == "Kept"


def test_expired_access_token_is_reported_as_expired(client, settings):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "1", "aud": ACCESS_AUDIENCE, "iat": now - timedelta(hours=1), "exp": now - timedelta(minutes=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    response = client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_missing_secret_fails_closed_without_creating_accounts(settings, count_rows):
    unconfigured = settings.model_copy(update={"SECRET_KEY": ""})
    with TestClient(create_app(unconfigured)) as bare:
        response = bare.post(
            "/api/auth/signup", json={"name": "Nokey", "email": "nokey@x.com", "password": PASSWORD}
        )
        assert response.status_code == 500
        assert response.json() == {"detail": "Server configuration error"}

        response = bare.post("/api/auth/google-signin", json={"email": "nokey-google@x.com", "name": "G"})
        assert response.status_code == 500

        response = bare.get("/api/user/profile", headers={"Authorization": "Bearer anything"})
        assert response.status_code == 500
        assert response.json() == {"detail": "Server configuration error"}

    assert count_rows(User, User.email.in_(["nokey@x.com", "nokey-google@x.com"])) == 0
