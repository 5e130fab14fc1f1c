import re
from datetime import date, timedelta
from uuid import UUID

from fastapi import status

from src.clinic_admin.infra.db.models import GiftCardORM, InventoryTransactionORM


async def test_gift_card_issue_and_balance(client, seed):
    headers = seed.headers("staff")
    created = await client.post(
        "/api/v1/gift-cards",
        json={"original_amount": 100, "recipient_name": "Ada", "recipient_email": "ada@example.com"},
        headers=headers,
    )
    assert created.status_code == status.HTTP_201_CREATED
    card = created.json()
    assert re.fullmatch(r"[A-HJ-NP-Z2-9]{4}(-[A-HJ-NP-Z2-9]{4}){3}", card["card_code"])
    assert card["current_balance"] == 100
    assert card["is_active"] is True

    balance = await client.get(
        "/api/v1/gift-cards/balance", params={"card_code": card["card_code"].lower()}, headers=headers
    )
    assert balance.status_code == status.HTTP_200_OK
    assert balance.json()["valid"] is True
    assert balance.json()["recipient_name"] == "Ada"


async def test_gift_card_lookup_errors(client, seed):
    headers = seed.headers("staff")
    missing_code = await client.get("/api/v1/gift-cards/balance", headers=headers)
    assert missing_code.status_code == status.HTTP_400_BAD_REQUEST

    unknown = await client.get("/api/v1/gift-cards/balance", params={"card_code": "NOPE-NOPE"}, headers=headers)
    assert unknown.status_code == status.HTTP_404_NOT_FOUND
    assert unknown.json() == {"error": "Gift card not found", "valid": False}


async def test_gift_card_redemption_guards_the_balance(client, seed):
    headers = seed.headers("staff")
    card = (await client.post("/api/v1/gift-cards", json={"original_amount": 50}, headers=headers)).json()

    too_much = await client.post(
        "/api/v1/gift-cards/redeem",
        json={"card_code": card["card_code"], "redemption_amount": 80},
        headers=headers,
    )
    assert too_much.status_code == status.HTTP_409_CONFLICT
    assert too_much.json() == {"error": "Insufficient balance", "current_balance": 50.0, "requested_amount": 80.0}

    partial = await client.post(
        "/api/v1/gift-cards/redeem",
        json={"card_code": card["card_code"], "redemption_amount": 20, "transaction_id": "txn-1"},
        headers=headers,
    )
    assert partial.status_code == status.HTTP_200_OK
    assert partial.json()["remaining_balance"] == 30
    assert partial.json()["gift_card"]["is_active"] is True
    assert partial.json()["transaction_id"] == "txn-1"

    rest = await client.post(
        "/api/v1/gift-cards/redeem",
        json={"card_code": card["card_code"], "redemption_amount": 30},
        headers=headers,
    )
    assert rest.status_code == status.HTTP_200_OK
    assert rest.json()["remaining_balance"] == 0
    assert rest.json()["gift_card"]["is_active"] is False

    spent = await client.post(
        "/api/v1/gift-cards/redeem",
        json={"card_code": card["card_code"], "redemption_amount": 1},
        headers=headers,
    )
    assert spent.status_code == status.HTTP_400_BAD_REQUEST
    assert spent.json()["error"] == "Gift card is not active"


async def test_expired_gift_card_cannot_be_redeemed(client, seed, fresh_store):
    headers = seed.headers("staff")
    card = (await client.post("/api/v1/gift-cards", json={"original_amount": 25}, headers=headers)).json()

    store = fresh_store()
    row = store.get(GiftCardORM, UUID(card["id"]))
    row.expiration_date = date.today() - timedelta(days=1)
    store.save(row)

    balance = await client.get("/api/v1/gift-cards/balance", params={"card_code": card["card_code"]}, headers=headers)
    assert balance.json()["is_expired"] is True
    assert balance.json()["valid"] is False

    redeem = await client.post(
        "/api/v1/gift-cards/redeem",
        json={"card_code": card["card_code"], "redemption_amount": 5},
        headers=headers,
    )
    assert redeem.status_code == status.HTTP_400_BAD_REQUEST
    assert redeem.json()["error"] == "Gift card has expired"


async def test_gift_cards_are_invisible_across_clinics(client, seed):
    card = (await client.post("/api/v1/gift-cards", json={"original_amount": 10}, headers=seed.headers("staff"))).json()
    response = await client.get(
        "/api/v1/gift-cards/balance", params={"card_code": card["card_code"]}, headers=seed.headers("admin_b")
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_gift_card_for_another_clinics_patient_is_not_found(client, seed, fresh_store):
    response = await client.post(
        "/api/v1/gift-cards",
        json={"original_amount": 20, "patient_id": str(seed.patient_b)},
        headers=seed.headers("staff"),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Patient not found"}

    store = fresh_store()
    assert store.scalars(store.select(GiftCardORM).where(GiftCardORM.patient_id == seed.patient_b)) == []

    own = await client.post(
        "/api/v1/gift-cards",
        json={"original_amount": 20, "patient_id": str(seed.patient_a)},
        headers=seed.headers("staff"),
    )
    assert own.status_code == status.HTTP_201_CREATED
    assert own.json()["patient_id"] == str(seed.patient_a)


async def test_membership_credits(client, seed):
    headers = seed.headers("staff")
    created = await client.post(
        "/api/v1/memberships",
        json={
            "patient_id": str(seed.patient_a),
            "membership_tier": "gold",
            "membership_name": "Gold Glow",
            "monthly_fee": 99,
            "credits_balance": 3,
            "discount_percentage": 10,
        },
        headers=headers,
    )
    assert created.status_code == status.HTTP_201_CREATED
    membership = created.json()
    assert membership["start_date"] == date.today().isoformat()

    duplicate = await client.post(
        "/api/v1/memberships",
        json={
            "patient_id": str(seed.patient_a),
            "membership_tier": "silver",
            "membership_name": "Silver",
            "monthly_fee": 49,
        },
        headers=headers,
    )
    assert duplicate.status_code == status.HTTP_409_CONFLICT

    balance = await client.get(
        "/api/v1/memberships/balance", params={"patient_id": str(seed.patient_a)}, headers=headers
    )
    assert balance.json()["has_active_membership"] is True
    assert balance.json()["credits_balance"] == 3

    over = await client.post(f"/api/v1/memberships/{membership['id']}/deduct", json={"amount": 5}, headers=headers)
    assert over.status_code == status.HTTP_409_CONFLICT
    assert over.json() == {"error": "Insufficient credits", "current_balance": 3.0, "requested_amount": 5.0}

    ok = await client.post(f"/api/v1/memberships/{membership['id']}/deduct", json={"amount": 2}, headers=headers)
    assert ok.status_code == status.HTTP_200_OK
    assert ok.json()["remaining_balance"] == 1


async def test_membership_balance_without_membership(client, seed):
    response = await client.get(
        "/api/v1/memberships/balance", params={"patient_id": str(seed.portal_patient)}, headers=seed.headers("staff")
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["has_active_membership"] is False
    assert response.json()["credits_balance"] == 0


async def test_inventory_transactions_move_stock(client, seed):
    headers = seed.headers("staff")
    item = (
        await client.post(
            "/api/v1/inventory",
            json={
                "product_name": "Filler 1ml",
                "product_category": "filler",
                "current_stock": 5,
                "reorder_level": 3,
                "unit_cost": 120,
            },
            headers=headers,
        )
    ).json()

    usage = await client.post(
        "/api/v1/inventory/transactions",
        json={"inventory_id": item["id"], "transaction_type": "usage", "quantity": -4, "reason": "Treatment"},
        headers=headers,
    )
    assert usage.status_code == status.HTTP_201_CREATED
    assert usage.json()["item"]["current_stock"] == 1
    assert usage.json()["transaction"]["total_cost"] == 480
    assert usage.json()["transaction"]["performed_by"] == str(seed.users["staff"])

    overdraw = await client.post(
        "/api/v1/inventory/transactions",
        json={"inventory_id": item["id"], "transaction_type": "usage", "quantity": -2},
        headers=headers,
    )
    assert overdraw.status_code == status.HTTP_409_CONFLICT
    assert overdraw.json()["error"] == "Insufficient stock"

    zero = await client.post(
        "/api/v1/inventory/transactions",
        json={"inventory_id": item["id"], "transaction_type": "usage", "quantity": 0},
        headers=headers,
    )
    assert zero.status_code == status.HTTP_400_BAD_REQUEST

    low = await client.get("/api/v1/inventory", params={"low_stock": "true"}, headers=headers)
    assert [i["id"] for i in low.json()] == [item["id"]]


async def test_inventory_stock_edit_writes_ledger_entry(client, seed, fresh_store):
    headers = seed.headers("staff")
    item = (
        await client.post("/api/v1/inventory", json={"product_name": "Gauze", "current_stock": 10}, headers=headers)
    ).json()

    updated = await client.put(
        f"/api/v1/inventory/{item['id']}", json={"current_stock": 4, "reason": "Stock count"}, headers=headers
    )
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["current_stock"] == 4

    store = fresh_store()
    ledger = store.scalars(
        store.select(InventoryTransactionORM).where(InventoryTransactionORM.inventory_id == UUID(item["id"]))
    )
    assert [(t.transaction_type, t.quantity, t.reason) for t in ledger] == [("adjustment", -6, "Stock count")]

    listing = await client.get("/api/v1/inventory/transactions", params={"inventory_id": item["id"]}, headers=headers)
    assert len(listing.json()) == 1
