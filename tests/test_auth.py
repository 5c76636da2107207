from src.models import PointTransaction, ReferralCode, WalletPoints

API = "/api/v1"

def register(client, **fields):
    data = {"name": "Jordan Rider", "email": "jordan@example.com", "password": "secret123"}
    data.update(fields)
    return client.post(f"{API}/auth/register", json=data)

def test_register_creates_wallets_bonus_and_referral_code(client, db_session):
    response = register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["roles"] == ["user"]
    assert body["user"]["referral_code"]

    user_id = body["user"]["id"]
    points = db_session.query(WalletPoints).filter(WalletPoints.user_id == user_id).one()
    assert points.points == 250
    bonus = db_session.query(PointTransaction).filter(PointTransaction.user_id == user_id).one()
    assert bonus.type == "bonus"

def test_duplicate_email_is_rejected(client):
    assert register(client).status_code == 201
    response = register(client)
    assert response.status_code == 400

def test_referral_rewards_the_referrer(client, db_session, make_user):
    referrer = make_user(miles=0)
    code = db_session.query(ReferralCode).filter(ReferralCode.user_id == referrer.id).one()

    response = register(client, email="friend@example.com", referral_code=code.code.lower())

    assert response.status_code == 201
    db_session.refresh(code)
    assert code.times_used == 1
    points = db_session.query(WalletPoints).filter(WalletPoints.user_id == referrer.id).one()
    db_session.refresh(points)
    assert points.points == 500

def test_unknown_referral_code_is_rejected(client):
    response = register(client, referral_code="NOPE1234")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid referral code"

def test_login_and_me(client):
    register(client)

    response = client.post(f"{API}/auth/login", json={"email": "jordan@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "jordan@example.com"

def test_login_with_wrong_password(client):
    register(client)
    response = client.post(f"{API}/auth/login", json={"email": "jordan@example.com", "password": "wrong-pass"})
    assert response.status_code == 401

def test_me_requires_token(client):
    assert client.get(f"{API}/auth/me").status_code == 401
