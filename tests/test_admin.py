import asyncio

import pytest

from odrlab.database import Database
from odrlab.errors import ConfigurationError
from odrlab.models.audit_log import AuditLog
from odrlab.models.comment import Comment, Like
from odrlab.models.faculty import Faculty
from odrlab.models.idea import Idea
from odrlab.models.idea_submission import IdeaSubmission
from odrlab.models.innovator import Innovator
from odrlab.models.mentor import Mentor
from odrlab.models.other import Other
from odrlab.models.user import User
from odrlab.services.profiles import ensure_admin

from tests.conftest import ADMIN_EMAIL, signup, submit_idea

EXTENSIONS = (Innovator, Mentor, Faculty, Other)


def extension_tables(count_rows, user_id):
    return sorted(model.__name__ for model in EXTENSIONS if count_rows(model, model.user_id == user_id))


def test_admin_routes_reject_other_roles(client):
    headers, _ = signup(client, "regular@x.com")
    assert client.get("/api/admin/users", headers=headers).status_code == 403
    assert client.get("/api/admin/users").status_code == 401


def test_bootstrap_admin_exists(client, admin_headers):
    users = client.get("/api/admin/users", headers=admin_headers).json()
    assert [u["email"] for u in users] == [ADMIN_EMAIL]
    assert users[0]["userRole"] == "ADMIN"


def test_bootstrap_admin_email_must_be_valid(settings):
    bad = settings.model_copy(update={"ADMIN_EMAIL": "not-an-email"})

    async def bootstrap():
        database = Database(bad.DATABASE_URL)
        await database.connect()
        try:
            await ensure_admin(database, bad)
        finally:
            await database.disconnect()

    with pytest.raises(ConfigurationError):
        asyncio.run(bootstrap())


def test_user_search(client, admin_headers):
    signup(client, "priya@x.com", name="Priya Sharma")
    signup(client, "rahul@x.com", name="Rahul Verma")

    found = client.get("/api/admin/users", params={"search": "sharma"}, headers=admin_headers).json()
    assert [u["email"] for u in found] == ["priya@x.com"]
    found = client.get("/api/admin/users", params={"search": "RAHUL@"}, headers=admin_headers).json()
    assert [u["name"] for u in found] == ["Rahul Verma"]


@pytest.mark.parametrize(
    "new_role, expected",
    [
        ("INNOVATOR", ["Innovator"]),
        ("FACULTY", ["Faculty"]),
        ("MENTOR", ["Mentor"]),
        ("ADMIN", []),
    ],
)
def test_role_change_keeps_exactly_one_extension(client, admin_headers, count_rows, new_role, expected):
    _, user = signup(client, "mover@x.com", otherWorkplace="Tribunal")
    assert extension_tables(count_rows, user["id"]) == ["Other"]

    response = client.put(
        f"/api/admin/users/{user['id']}",
        json={"userRole": new_role, "institution": "Delhi University"},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["user"]["userRole"] == new_role
    assert extension_tables(count_rows, user["id"]) == expected


def test_admin_promotion_to_mentor_is_approved(client, admin_headers, count_rows):
    _, user = signup(client, "promoted@x.com")
    response = client.put(
        f"/api/admin/users/{user['id']}",
        json={"userRole": "MENTOR", "mentorType": "law", "organization": "Bar Council"},
        headers=admin_headers,
    )
    profile = response.json()["user"]
    assert profile["mentorType"] == "LEGAL_EXPERT"
    assert profile["organization"] == "Bar Council"
    assert profile["isMentorApproved"] is True
    assert count_rows(Mentor, Mentor.user_id == user["id"], Mentor.approved.is_(True)) == 1


def test_admin_edit_of_base_fields(client, admin_headers, count_rows):
    _, user = signup(client, "edit-me@x.com", name="Before")
    signup(client, "taken@x.com")

    response = client.put(
        f"/api/admin/users/{user['id']}",
        json={"name": "After", "email": "Edited@X.com", "city": "Mumbai", "workplace": "High Court"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    profile = response.json()["user"]
    assert profile["name"] == "After"
    assert profile["email"] == "edited@x.com"
    assert profile["city"] == "Mumbai"
    assert profile["workplace"] == "High Court"
    assert count_rows(AuditLog, AuditLog.action == "UPDATE_USER") == 1

    response = client.put(
        f"/api/admin/users/{user['id']}", json={"email": "taken@x.com"}, headers=admin_headers
    )
    assert response.status_code == 409

    detail = client.get(f"/api/admin/users/{user['id']}", headers=admin_headers).json()
    assert detail["email"] == "edited@x.com"
    assert detail["hasMentorApplication"] is False
    assert client.get("/api/admin/users/999999", headers=admin_headers).status_code == 404


def test_admin_cannot_demote_or_delete_self(client, admin_headers, count_rows):
    admin = client.get("/api/user/profile", headers=admin_headers).json()["user"]

    response = client.put(f"/api/admin/users/{admin['id']}", json={"userRole": "OTHER"}, headers=admin_headers)
    assert response.status_code == 400
    assert client.delete(f"/api/admin/users/{admin['id']}", headers=admin_headers).status_code == 400
    assert count_rows(User, User.id == admin["id"]) == 1


def test_delete_user_removes_owned_content(client, admin_headers, published_idea, count_rows):
    owner_headers, idea = published_idea
    owner = client.get("/api/user/profile", headers=owner_headers).json()["user"]
    submit_idea(client, owner_headers, title="Still pending")

    visitor_headers, visitor = signup(client, "visitor@x.com")
    thread = client.post(
        f"/api/discussion/{idea['id']}/comments", json={"content": "Visitor question"}, headers=visitor_headers
    ).json()
    client.post(
        f"/api/discussion/{idea['id']}/comments",
        json={"content": "Owner answer", "parentId": thread["id"]},
        headers=owner_headers,
    )
    client.post(f"/api/discussion/{idea['id']}/likes", json={"action": "like"}, headers=visitor_headers)

    response = client.delete(f"/api/admin/users/{owner['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert count_rows(User, User.id == owner["id"]) == 0
    assert count_rows(Idea) == 0
    assert count_rows(IdeaSubmission, IdeaSubmission.owner_id == owner["id"]) == 0
    assert count_rows(Comment) == 0
    assert count_rows(Like) == 0
    assert extension_tables(count_rows, owner["id"]) == []
    assert count_rows(User, User.id == visitor["id"]) == 1
    assert count_rows(AuditLog, AuditLog.action == "DELETE_USER", AuditLog.success.is_(True)) == 1

    # The old token no longer resolves to a user
    assert client.get("/api/user/profile", headers=owner_headers).status_code == 401
    assert client.delete(f"/api/admin/users/{owner['id']}", headers=admin_headers).status_code == 404


def test_deleting_a_commenter_removes_their_subthreads(client, admin_headers, published_idea, count_rows):
    owner_headers, idea = published_idea
    base = f"/api/discussion/{idea['id']}/comments"
    leaving_headers, leaving = signup(client, "leaving@x.com")

    root = client.post(base, json={"content": "Owner update"}, headers=owner_headers).json()
    question = client.post(
        base, json={"content": "Leaving soon", "parentId": root["id"]}, headers=leaving_headers
    ).json()
    client.post(base, json={"content": "Answer to leaver", "parentId": question["id"]}, headers=owner_headers)

    assert client.delete(f"/api/admin/users/{leaving['id']}", headers=admin_headers).status_code == 200
    thread = client.get(base, headers=owner_headers).json()
    assert [c["content"] for c in thread] == ["Owner update"]
    assert thread[0]["replies"] == []
    assert count_rows(Comment) == 1
