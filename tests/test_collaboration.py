from odrlab.models.comment import Like
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor

from tests.conftest import signup, submit_idea


def approved_mentor(client, admin_headers, email="mentor@odrlab.com"):
    headers, user = signup(client, email, name="Mentor", userType="tech", techOrg="Acme")
    response = client.post("/api/admin/approve-mentor", json={"userId": user["id"]}, headers=admin_headers)
    assert response.status_code == 200, response.text
    return headers, user


def test_join_and_leave_as_collaborator(client, published_idea, count_rows):
    owner_headers, idea = published_idea
    headers, user = signup(client, "joiner@x.com")
    base = f"/api/collaboration/{idea['id']}"

    response = client.post(f"{base}/join-collaborator", headers=headers)
    assert response.status_code == 201
    assert response.json()["userId"] == user["id"]

    again = client.post(f"{base}/join-collaborator", headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "You are already a collaborator for this idea"
    assert count_rows(IdeaCollaborator) == 1

    members = client.get(f"{base}/collaborators", headers=owner_headers).json()
    assert [m["userId"] for m in members] == [user["id"]]
    assert members[0]["user"]["email"] == "joiner@x.com"

    assert client.delete(f"{base}/leave-collaborator", headers=headers).status_code == 200
    assert client.delete(f"{base}/leave-collaborator", headers=headers).status_code == 404
    assert count_rows(IdeaCollaborator) == 0


def test_owner_cannot_collaborate_on_own_idea(client, published_idea):
    owner_headers, idea = published_idea
    response = client.post(f"/api/collaboration/{idea['id']}/join-collaborator", headers=owner_headers)
    assert response.status_code == 400


def test_unpublished_ideas_are_closed_to_collaboration(client):
    headers, _ = signup(client, "early@x.com")
    submission = submit_idea(client, headers)
    response = client.post(f"/api/collaboration/{submission['id']}/join-collaborator", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Idea not found or not approved"


def test_only_approved_mentors_can_mentor(client, admin_headers, published_idea, count_rows):
    _, idea = published_idea
    url = f"/api/collaboration/{idea['id']}/request-mentor"

    plain_headers, _ = signup(client, "plain@x.com")
    assert client.post(url, headers=plain_headers).status_code == 403

    pending_headers, _ = signup(client, "pending@x.com", userType="law")
    assert client.post(url, headers=pending_headers).status_code == 403

    mentor_headers, mentor = approved_mentor(client, admin_headers)
    response = client.post(url, headers=mentor_headers)
    assert response.status_code == 201
    assert client.post(url, headers=mentor_headers).status_code == 400
    assert count_rows(IdeaMentor) == 1

    assert client.post("/api/collaboration/999999/request-mentor", headers=mentor_headers).status_code == 404

    mentors = client.get(f"/api/collaboration/{idea['id']}/mentors", headers=mentor_headers).json()
    assert [m["userId"] for m in mentors] == [mentor["id"]]
    directory = client.get(f"/api/mentors/{mentor['id']}", headers=mentor_headers).json()["mentor"]
    assert [entry["idea"]["id"] for entry in directory["mentoringIdeas"]] == [idea["id"]]

    assert client.delete(f"/api/collaboration/{idea['id']}/leave-mentor", headers=mentor_headers).status_code == 200
    assert count_rows(IdeaMentor) == 0


def test_like_and_unlike_are_idempotent(client, published_idea, count_rows):
    _, idea = published_idea
    headers, user = signup(client, "liker@x.com")
    url = f"/api/discussion/{idea['id']}/likes"

    assert client.post(url, json={"action": "like"}, headers=headers).json() == {"liked": True, "likes": 1}
    assert client.post(url, json={"action": "like"}, headers=headers).json() == {"liked": True, "likes": 1}
    assert count_rows(Like, Like.user_id == user["id"]) == 1
    assert client.get(f"{url}/check", headers=headers).json() == {"hasLiked": True}

    assert client.post(url, json={"action": "unlike"}, headers=headers).json() == {"liked": False, "likes": 0}
    assert client.post(url, json={"action": "unlike"}, headers=headers).json() == {"liked": False, "likes": 0}
    assert count_rows(Like) == 0
    assert client.get(f"{url}/check", headers=headers).json() == {"hasLiked": False}

    assert client.post(url, json={"action": "love"}, headers=headers).status_code == 400


def test_likes_show_on_the_board(client, published_idea):
    owner_headers, idea = published_idea
    fan_headers, _ = signup(client, "board-fan@x.com")
    for headers in (owner_headers, fan_headers):
        client.post(f"/api/discussion/{idea['id']}/likes", json={"action": "like"}, headers=headers)
    assert client.get("/api/ideas/approved").json()[0]["likes"] == 2


def test_threaded_comments_and_comment_likes(client, published_idea):
    owner_headers, idea = published_idea
    reader_headers, reader = signup(client, "reader@x.com", name="Reader")
    base = f"/api/discussion/{idea['id']}/comments"

    root = client.post(base, json={"content": "How does escalation work?"}, headers=reader_headers)
    assert root.status_code == 201
    root = root.json()
    assert root["author"]["id"] == reader["id"]
    assert root["parentId"] is None

    reply = client.post(
        base, json={"content": "A human mediator steps in", "parentId": root["id"]}, headers=owner_headers
    ).json()
    client.post(base, json={"content": "Thanks!", "parentId": reply["id"]}, headers=reader_headers)
    client.post(base, json={"content": "Second topic"}, headers=owner_headers)

    like = client.post(f"{base}/{reply['id']}/likes", json={"action": "like"}, headers=reader_headers)
    assert like.json() == {"liked": True, "likes": 1}

    thread = client.get(base, headers=reader_headers).json()
    assert [c["content"] for c in thread] == ["How does escalation work?", "Second topic"]
    assert [c["content"] for c in thread[0]["replies"]] == ["A human mediator steps in"]
    assert thread[0]["replies"][0]["likes"] == 1
    assert [c["content"] for c in thread[0]["replies"][0]["replies"]] == ["Thanks!"]

    liked = client.get(f"{base}/liked", headers=reader_headers).json()
    assert liked == {"likedCommentIds": [reply["id"]]}
    assert client.get("/api/ideas/approved").json()[0]["commentCount"] == 4


def test_reply_must_target_a_comment_on_the_same_idea(client, admin_headers, published_idea):
    owner_headers, idea = published_idea
    other = client.post(
        "/api/ideas/",
        json={"title": "Second idea", "description": "Another published idea", "ownerId": 1},
        headers=admin_headers,
    ).json()
    foreign = client.post(
        f"/api/discussion/{other['id']}/comments", json={"content": "Elsewhere"}, headers=owner_headers
    ).json()

    response = client.post(
        f"/api/discussion/{idea['id']}/comments",
        json={"content": "Cross-thread reply", "parentId": foreign["id"]},
        headers=owner_headers,
    )
    assert response.status_code == 404
    response = client.post(
        f"/api/discussion/{idea['id']}/comments/{foreign['id']}/likes",
        json={"action": "like"},
        headers=owner_headers,
    )
    assert response.status_code == 404
