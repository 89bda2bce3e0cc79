import time

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from core.config import SUPABASE_JWT_SECRET
from core.db import get_db
from models import User
from routers.dependencies import get_current_user


def _token(sub, *, expires_in=3600, audience="authenticated", secret=SUPABASE_JWT_SECRET, **claims):
    payload = {"sub": sub, "aud": audience, "exp": int(time.time()) + expires_in, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def client(test_db):
    app = FastAPI()

    @app.get("/me")
    def me(current_user=Depends(get_current_user)):
        return {"account_id": current_user.account_id, "full_name": current_user.full_name}

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


def test_known_user_is_resolved(client, current_user):
    response = client.get("/me", headers={"Authorization": f"Bearer {_token('auth-user-1')}"})
    assert response.status_code == 200
    assert response.json() == {"account_id": current_user.account_id, "full_name": "Lan Nguyen"}


def test_first_sight_creates_profile(client, test_db):
    token = _token("auth-new", email="hoa@example.com", user_metadata={"full_name": "Hoa Le"})

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["full_name"] == "Hoa Le"
    profile = test_db.query(User).filter(User.auth_user_id == "auth-new").one()
    assert profile.email == "hoa@example.com"
    assert profile.camly_balance == 0


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Token abc"},
        {"Authorization": f"Bearer {_token('auth-user-1', expires_in=-3600)}"},
        {"Authorization": f"Bearer {_token('auth-user-1', audience='anon')}"},
        {"Authorization": f"Bearer {_token('auth-user-1', secret='some-other-secret-that-is-long-enough')}"},
    ],
)
def test_bad_credentials_are_rejected(client, headers):
    assert client.get("/me", headers=headers).status_code == 401
