import pytest

from domain.comments import Comment
from domain.posts import BLANK_MESSAGE_ERROR, Post
import repository
import settings


def assert_redirects_to(response, path):
    assert response.status_code == 303
    assert response.headers["location"] == path


# --- destroy ---
def test_destroy_forbidden_for_non_owner(client, post_repo, make_post, make_user, headers_for):
    post = make_post()
    stranger = make_user()
    resp = client.delete(f"/posts/{post.id}", headers=headers_for(stranger))
    assert resp.status_code == 403
    assert post.id in post_repo.posts


def test_destroy_requires_sign_in(client, post_repo, make_post):
    post = make_post()
    resp = client.delete(f"/posts/{post.id}")
    assert_redirects_to(resp, settings.SIGN_IN_PATH)
    assert post.id in post_repo.posts


def test_owner_destroys_post_and_its_comments(client, post_repo, make_post, make_user, headers_for):
    owner = make_user()
    post = make_post(owner=owner)
    post_repo.comments[post.id] = [Comment(post_id=post.id, author="someone", message="nice")]
    resp = client.delete(f"/posts/{post.id}", headers=headers_for(owner))
    assert_redirects_to(resp, settings.ROOT_PATH)
    assert post.id not in post_repo.posts
    assert post.id not in post_repo.comments
    assert client.get(f"/posts/{post.id}").status_code == 404


def test_destroy_unknown_post(client, make_user, headers_for):
    resp = client.delete("/posts/SPACEDUCK", headers=headers_for(make_user()))
    assert resp.status_code == 404


def test_destroy_refused_when_comments_exceed_one_batch(client, post_repo, make_post, make_user, headers_for, monkeypatch):
    monkeypatch.setattr(repository, "MAX_BATCH_WRITES", 3)
    owner = make_user()
    post = make_post(owner=owner)
    post_repo.comments[post.id] = [Comment(post_id=post.id, author="b", message=f"c{i}") for i in range(3)]
    resp = client.delete(f"/posts/{post.id}", headers=headers_for(owner))
    assert resp.status_code == 409
    assert post.id in post_repo.posts
    assert len(post_repo.comments[post.id]) == 3


# --- update ---
def test_update_forbidden_for_non_owner(client, post_repo, make_post, make_user, headers_for):
    post = make_post(message="Initial Value")
    resp = client.patch(f"/posts/{post.id}", json={"message": "wahoo"}, headers=headers_for(make_user()))
    assert resp.status_code == 403
    assert post_repo.posts[post.id].message == "Initial Value"


def test_update_requires_sign_in(client, make_post):
    post = make_post()
    resp = client.patch(f"/posts/{post.id}", json={"message": "Hello"})
    assert_redirects_to(resp, settings.SIGN_IN_PATH)


def test_owner_updates_post(client, post_repo, make_post, make_user, headers_for):
    owner = make_user()
    post = make_post(message="Initial Value", owner=owner)
    resp = client.patch(f"/posts/{post.id}", json={"message": "Changed"}, headers=headers_for(owner))
    assert_redirects_to(resp, settings.ROOT_PATH)
    assert post_repo.posts[post.id].message == "Changed"
    assert post_repo.posts[post.id].owner == owner.username


def test_update_unknown_post(client, make_user, headers_for):
    resp = client.patch("/posts/YOLOSWAG", json={"message": "Changed"}, headers=headers_for(make_user()))
    assert resp.status_code == 404


@pytest.mark.parametrize("message", ["", "   "])
def test_update_with_blank_message_is_unprocessable(client, post_repo, make_post, make_user, headers_for, message):
    owner = make_user()
    post = make_post(message="Initial Value", owner=owner)
    resp = client.patch(f"/posts/{post.id}", json={"message": message}, headers=headers_for(owner))
    assert resp.status_code == 422
    assert resp.json()["form"]["errors"] == [BLANK_MESSAGE_ERROR]
    assert post_repo.posts[post.id].message == "Initial Value"


def test_update_unknown_post_is_not_found_even_with_blank_message(client, make_user, headers_for):
    resp = client.patch("/posts/nope", json={"message": ""}, headers=headers_for(make_user()))
    assert resp.status_code == 404


def test_update_non_owner_with_blank_message_is_forbidden(client, make_post, make_user, headers_for):
    post = make_post()
    resp = client.patch(f"/posts/{post.id}", json={"message": ""}, headers=headers_for(make_user()))
    assert resp.status_code == 403


# --- edit ---
def test_edit_forbidden_for_non_owner(client, make_post, make_user, headers_for):
    post = make_post()
    resp = client.get(f"/posts/{post.id}/edit", headers=headers_for(make_user()))
    assert resp.status_code == 403


def test_edit_requires_sign_in(client, make_post):
    post = make_post()
    resp = client.get(f"/posts/{post.id}/edit")
    assert_redirects_to(resp, settings.SIGN_IN_PATH)


def test_edit_shows_prefilled_form(client, make_post, make_user, headers_for):
    owner = make_user()
    post = make_post(message="draft", owner=owner)
    resp = client.get(f"/posts/{post.id}/edit", headers=headers_for(owner))
    assert resp.status_code == 200
    assert resp.json() == {"message": "draft", "errors": []}


def test_edit_unknown_post(client, make_user, headers_for):
    resp = client.get("/posts/BLAHBLAH/edit", headers=headers_for(make_user()))
    assert resp.status_code == 404


# --- show ---
def test_show_post_with_comments(client, post_repo, make_post):
    post = make_post(message="look")
    comment = Comment(post_id=post.id, author="ann", message="wow")
    post_repo.comments[post.id] = [comment]
    resp = client.get(f"/posts/{post.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "look"
    assert [c["message"] for c in body["comments"]] == ["wow"]


def test_show_unknown_post(client):
    assert client.get("/posts/TACOCAT").status_code == 404


# --- index ---
def test_index(client, make_post):
    make_post(message="first")
    resp = client.get("/posts")
    assert resp.status_code == 200
    assert [p["message"] for p in resp.json()] == ["first"]


def test_root_lists_posts(client, make_post):
    make_post(message="home")
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()[0]["message"] == "home"


# --- new ---
def test_new_requires_sign_in(client):
    assert_redirects_to(client.get("/posts/new"), settings.SIGN_IN_PATH)


def test_new_shows_empty_form(client, make_user, headers_for):
    resp = client.get("/posts/new", headers=headers_for(make_user()))
    assert resp.status_code == 200
    assert resp.json() == {"message": "", "errors": []}


# --- create ---
def test_create_requires_sign_in(client, post_repo):
    resp = client.post("/posts", json={"message": "Hello"})
    assert_redirects_to(resp, settings.SIGN_IN_PATH)
    assert post_repo.posts == {}


def test_create_post(client, post_repo, make_user, headers_for):
    user = make_user()
    resp = client.post("/posts", json={"message": "Hello!"}, headers=headers_for(user))
    assert_redirects_to(resp, settings.ROOT_PATH)
    [post] = post_repo.posts.values()
    assert post.message == "Hello!"
    assert post.owner == user.username


def test_create_with_blank_message_is_unprocessable(client, post_repo, make_user, headers_for):
    resp = client.post("/posts", json={"message": ""}, headers=headers_for(make_user()))
    assert resp.status_code == 422
    assert resp.json()["detail"] == [BLANK_MESSAGE_ERROR]
    assert len(post_repo.posts) == 0


def test_create_oversized_message(client, post_repo, make_user, headers_for):
    resp = client.post("/posts", json={"message": "x" * (500 * 1024 + 1)}, headers=headers_for(make_user()))
    assert resp.status_code == 413
    assert len(post_repo.posts) == 0


def test_post_is_owned_by_its_creator_only():
    post = Post(message="m", owner="ann")
    assert post.is_owned_by("ann")
    assert not post.is_owned_by("bob")
