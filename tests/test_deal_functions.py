from decimal import Decimal

from src.models import DealBooking, PointTransaction, WalletPoints

MILES_URL = "/functions/v1/process-deal-miles-payment"
FREE_URL = "/functions/v1/process-free-deal-claim"

def miles_balance(db_session, user):
    return db_session.query(WalletPoints).filter(WalletPoints.user_id == user.id).one().points

def test_miles_payment_books_deal_and_debits_miles(client, db_session, make_user, make_deal, auth_headers):
    user = make_user(miles=1200)
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 2, "milesAmount": 1000, "milesValue": 0.02
    })

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Deal purchased successfully with miles"}

    booking = db_session.query(DealBooking).one()
    assert booking.total_price == Decimal("0")
    assert booking.payment_method == "miles"
    assert booking.miles_redeemed == 1000
    assert miles_balance(db_session, user) == 200

    redeem = db_session.query(PointTransaction).filter(PointTransaction.type == "redeem").one()
    assert redeem.points == -1000
    assert redeem.reference_id == str(booking.id)

    db_session.refresh(deal)
    assert deal.purchases == 2

def test_miles_payment_missing_fields(client, make_user, auth_headers):
    user = make_user()
    response = client.post(MILES_URL, headers=auth_headers(user), json={"userId": user.id})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing required fields"}

def test_miles_payment_unknown_deal(client, make_user, auth_headers):
    user = make_user(miles=1000)
    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": 999, "quantity": 1, "milesAmount": 500
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Deal not found"

def test_miles_payment_must_cover_total(client, db_session, make_user, make_deal, auth_headers):
    user = make_user(miles=1000)
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 1, "milesAmount": 400
    })

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Miles discount (8.00) doesn't cover total price (10.00)"
    }
    assert db_session.query(DealBooking).count() == 0
    assert miles_balance(db_session, user) == 1000

def test_miles_payment_insufficient_balance(client, db_session, make_user, make_deal, auth_headers):
    user = make_user(miles=300)
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 1, "milesAmount": 500
    })

    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient miles balance (300 available, 500 required)"
    assert db_session.query(DealBooking).count() == 0

def test_miles_payment_rejects_client_rate(client, make_user, make_deal, auth_headers):
    user = make_user(miles=1000)
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 1, "milesAmount": 100, "milesValue": 0.10
    })

    assert response.status_code == 400
    assert response.json()["success"] is False

def test_miles_payment_for_another_user_is_forbidden(client, make_user, make_deal, auth_headers):
    caller = make_user(miles=1000)
    victim = make_user(miles=1000)
    deal = make_deal()

    response = client.post(MILES_URL, headers=auth_headers(caller), json={
        "userId": victim.id, "dealId": deal.id, "quantity": 1, "milesAmount": 500
    })
    assert response.status_code == 403

def test_free_claim_creates_free_booking(client, db_session, make_user, make_deal, auth_headers):
    user = make_user()
    deal = make_deal(price=Decimal("0.00"))

    response = client.post(FREE_URL, headers=auth_headers(user), json={"userId": user.id, "dealId": deal.id})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["booking"]["payment_method"] == "free"
    assert body["booking"]["quantity"] == 1
    assert Decimal(str(body["booking"]["total_price"])) == 0

    db_session.refresh(deal)
    assert deal.purchases == 1

def test_free_claim_missing_fields(client, make_user, auth_headers):
    user = make_user()
    response = client.post(FREE_URL, headers=auth_headers(user), json={"userId": user.id})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: userId, dealId"

def test_free_claim_unknown_deal(client, make_user, auth_headers):
    user = make_user()
    response = client.post(FREE_URL, headers=auth_headers(user), json={"userId": user.id, "dealId": 42})
    assert response.status_code == 404
    assert response.json()["error"] == "Deal not found"

def test_free_claim_rejects_paid_deal(client, db_session, make_user, make_deal, auth_headers):
    user = make_user()
    deal = make_deal(price=Decimal("5.00"))

    response = client.post(FREE_URL, headers=auth_headers(user), json={"userId": user.id, "dealId": deal.id})

    assert response.status_code == 400
    assert response.json()["error"] == "This deal is not free"
    assert db_session.query(DealBooking).count() == 0

def test_preflight_returns_cors_headers(client):
    response = client.options(MILES_URL, headers={
        "Origin": "http://localhost:5173",
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "authorization, content-type",
    })
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"

def test_free_claim_rejects_non_positive_quantity(client, db_session, make_user, make_deal, auth_headers):
    user = make_user()
    deal = make_deal(price=Decimal("0.00"))

    response = client.post(FREE_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 0
    })

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Quantity must be at least 1"}
    assert db_session.query(DealBooking).count() == 0

def test_malformed_body_uses_error_envelope(client, make_user, make_deal, auth_headers):
    user = make_user(miles=1000)
    deal = make_deal()

    response = client.post(MILES_URL, headers=auth_headers(user), json={
        "userId": user.id, "dealId": deal.id, "quantity": 1, "milesAmount": "lots"
    })

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"].startswith("Invalid request body: milesAmount")
