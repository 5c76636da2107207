from datetime import timedelta
from decimal import Decimal

from src.models import DealBooking, WalletCredits
from src.utils.timezone import today

API = "/api/v1"

def test_featured_deals_listed_first_and_past_deals_hidden(client, make_deal):
    regular = make_deal(title="Half-price Wings", deal_date=today() + timedelta(days=1))
    featured = make_deal(title="VIP Table", featured=True, deal_date=today() + timedelta(days=5))
    undated = make_deal(title="Open Bar Hour", deal_date=None)
    make_deal(title="Last Week", deal_date=today() - timedelta(days=7))
    make_deal(title="Paused", status="inactive")

    body = client.get(f"{API}/deals/").json()

    ids = [d["id"] for d in body["deals"]]
    assert body["total"] == 3
    assert ids[0] == featured.id
    assert set(ids) == {regular.id, featured.id, undated.id}

def test_deals_filter_by_category(client, make_deal):
    make_deal(category="club")
    bar = make_deal(category="bar")

    body = client.get(f"{API}/deals/", params={"category": "bar"}).json()
    assert [d["id"] for d in body["deals"]] == [bar.id]

def test_promoter_creates_and_edits_own_deal(client, make_user, auth_headers):
    promoter = make_user(role="promoter")
    headers = auth_headers(promoter)

    created = client.post(f"{API}/deals/", headers=headers, json={
        "title": "Ladies Night", "category": "club", "price": "5.00", "deal_time": "22:30"
    })
    assert created.status_code == 201
    deal = created.json()
    assert deal["created_by"] == promoter.id
    assert deal["status"] == "active"

    updated = client.put(f"{API}/deals/{deal['id']}", headers=headers, json={"price": "7.50"})
    assert updated.status_code == 200
    assert Decimal(str(updated.json()["price"])) == Decimal("7.50")

def test_promoter_cannot_edit_someone_elses_deal(client, make_user, auth_headers, make_deal):
    owner = make_user(role="promoter")
    other = make_user(role="promoter")
    deal = make_deal(created_by=owner.id)

    response = client.put(f"{API}/deals/{deal.id}", headers=auth_headers(other), json={"featured": True})
    assert response.status_code == 403

    admin = make_user(role="admin")
    response = client.put(f"{API}/deals/{deal.id}", headers=auth_headers(admin), json={"featured": True})
    assert response.status_code == 200

def test_riders_cannot_create_deals(client, make_user, auth_headers):
    response = client.post(f"{API}/deals/", headers=auth_headers(make_user()), json={"title": "x", "price": "1.00"})
    assert response.status_code == 403

def test_deal_time_must_be_hh_mm(client, make_user, auth_headers):
    response = client.post(f"{API}/deals/", headers=auth_headers(make_user(role="admin")), json={
        "title": "Late Show", "price": "3.00", "deal_time": "10pm"
    })
    assert response.status_code == 422

def test_purchase_deal_with_credits_and_miles(client, db_session, make_user, auth_headers, make_deal):
    user = make_user(miles=250, credits=Decimal("20.00"))
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(f"{API}/deals/{deal.id}/purchase", headers=auth_headers(user), json={
        "quantity": 2, "payment_method": "wallet", "miles_amount": 250
    })

    assert response.status_code == 201
    result = response.json()
    assert Decimal(str(result["subtotal"])) == Decimal("20.00")
    assert Decimal(str(result["amount_charged"])) == Decimal("15.00")
    assert result["booking"]["miles_redeemed"] == 250

    credits = db_session.query(WalletCredits).filter(WalletCredits.user_id == user.id).one()
    db_session.refresh(credits)
    assert Decimal(credits.balance) == Decimal("5.00")

    mine = client.get(f"{API}/deals/bookings/me", headers=auth_headers(user)).json()
    assert mine[0]["deal_title"] == "Skip-the-line Entry"

def test_purchase_fails_without_credits(client, db_session, make_user, auth_headers, make_deal):
    user = make_user(credits=Decimal("3.00"))
    deal = make_deal(price=Decimal("10.00"))

    response = client.post(f"{API}/deals/{deal.id}/purchase", headers=auth_headers(user), json={"quantity": 1})

    assert response.status_code == 400
    assert db_session.query(DealBooking).count() == 0

def test_purchase_unknown_deal(client, make_user, auth_headers):
    response = client.post(f"{API}/deals/999/purchase", headers=auth_headers(make_user()), json={"quantity": 1})
    assert response.status_code == 404
