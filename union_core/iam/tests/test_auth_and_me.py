import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


def test_login_sets_cookies_and_me_reads_them(union, make_user, make_member):
    user = make_user(username="kim")
    make_member(union, name="김조합원", auth_user=user)
    client = APIClient()

    res = client.post("/api/v1/auth/login/", {"username": "kim", "password": "pass1234"}, format="json")

    assert res.status_code == 200
    assert "uc_access" in res.cookies
    assert "uc_refresh" in res.cookies
    assert res.cookies["uc_access"]["httponly"]

    me = client.get("/api/v1/me/")
    assert me.status_code == 200
    body = me.json()
    assert body["user"]["username"] == "kim"
    assert [(m["union_slug"], m["member_name"], m["role"]) for m in body["memberships"]] == [
        ("happy-1", "김조합원", "USER")
    ]


def test_login_with_wrong_password_is_401(make_user):
    make_user(username="kim")

    res = APIClient().post("/api/v1/auth/login/", {"username": "kim", "password": "nope"}, format="json")

    assert res.status_code == 401
    assert res.json()["error"]["code"] == "authentication_failed"
    assert res["WWW-Authenticate"].startswith("Bearer")


def test_refresh_uses_refresh_cookie(make_user):
    make_user(username="kim")
    client = APIClient()
    client.post("/api/v1/auth/login/", {"username": "kim", "password": "pass1234"}, format="json")

    res = client.post("/api/v1/auth/refresh/")

    assert res.status_code == 200
    assert "uc_access" in res.cookies


def test_me_requires_authentication():
    res = APIClient().get("/api/v1/me/")

    assert res.status_code == 401
    assert res.json()["error"]["code"] == "not_authenticated"


def test_logout_clears_cookies(make_user):
    make_user(username="kim")
    client = APIClient()
    client.post("/api/v1/auth/login/", {"username": "kim", "password": "pass1234"}, format="json")

    res = client.post("/api/v1/auth/logout/")

    assert res.status_code == 200
    assert res.cookies["uc_access"].value == ""


def test_refresh_with_garbage_cookie_is_401():
    client = APIClient()
    client.cookies["uc_refresh"] = "not-a-jwt"

    res = client.post("/api/v1/auth/refresh/")

    assert res.status_code == 401
    assert res.json()["error"]["code"] == "token_not_valid"
