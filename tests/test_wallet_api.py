from decimal import Decimal

from src.models import ReferralCode

API = "/api/v1"

def test_wallet_summary_values_miles_at_current_rate(client, make_user, auth_headers):
    user = make_user(miles=1000, credits=Decimal("12.50"))

    response = client.get(f"{API}/wallet/", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert Decimal(str(body["credits_balance"])) == Decimal("12.50")
    assert body["miles_balance"] == 1000
    assert Decimal(str(body["miles_value"])) == Decimal("20.00")

def test_miles_quote(client, make_user, auth_headers):
    user = make_user(miles=600)
    headers = auth_headers(user)

    quote = client.post(f"{API}/wallet/miles/quote", headers=headers, json={"miles_amount": 250, "total": "10.00"})
    assert quote.status_code == 200
    assert Decimal(str(quote.json()["residual"])) == Decimal("5.00")

    rejected = client.post(f"{API}/wallet/miles/quote", headers=headers, json={"miles_amount": 480, "total": "10.00"})
    assert rejected.status_code == 400
    assert "475 miles or less" in rejected.json()["detail"]

    too_many = client.post(f"{API}/wallet/miles/quote", headers=headers, json={"miles_amount": 700, "total": "20.00"})
    assert too_many.status_code == 400
    assert too_many.json()["detail"] == "You only have 600 miles available"

def test_admin_adjusts_credits_and_miles(client, make_user, auth_headers):
    admin = make_user(role="admin")
    rider = make_user(miles=100)
    headers = auth_headers(admin)

    response = client.post(f"{API}/wallet/credits", headers=headers, json={"user_id": rider.id, "amount": "25.00"})
    assert response.status_code == 200
    assert Decimal(str(response.json()["credits_balance"])) == Decimal("25.00")

    response = client.post(f"{API}/wallet/points", headers=headers, json={"user_id": rider.id, "points": -40})
    assert response.status_code == 200
    assert response.json()["miles_balance"] == 60

    response = client.post(f"{API}/wallet/points", headers=headers, json={"user_id": rider.id, "points": -100})
    assert response.status_code == 400

    response = client.post(f"{API}/wallet/credits", headers=headers, json={"user_id": 9999, "amount": "5.00"})
    assert response.status_code == 404

def test_adjustments_are_admin_only(client, make_user, auth_headers):
    rider = make_user()
    response = client.post(
        f"{API}/wallet/credits", headers=auth_headers(rider), json={"user_id": rider.id, "amount": "100.00"}
    )
    assert response.status_code == 403

def test_transactions_list_newest_first(client, make_user, make_route, auth_headers):
    user = make_user(credits=Decimal("50.00"))
    route = make_route()
    headers = auth_headers(user)
    client.post(f"{API}/bookings/", headers=headers, json={"route_id": route.id, "time_slot": "21:00", "quantity": 1})

    body = client.get(f"{API}/wallet/transactions", headers=headers).json()

    assert body["credit_transactions"][0]["type"] == "purchase"
    assert body["point_transactions"][0]["type"] == "bonus"

def test_referral_info_and_lookup(client, db_session, make_user, auth_headers):
    user = make_user(name="Casey Promoter")
    code = db_session.query(ReferralCode).filter(ReferralCode.user_id == user.id).one().code

    info = client.get(f"{API}/wallet/referral", headers=auth_headers(user)).json()
    assert info["code"] == code
    assert info["referral_reward"] == 500
    assert info["registration_bonus"] == 250

    lookup = client.get(f"{API}/referrals/{code}")
    assert lookup.status_code == 200
    assert lookup.json()["referrer_name"] == "Casey Promoter"

    assert client.get(f"{API}/referrals/UNKNOWN1").status_code == 404
