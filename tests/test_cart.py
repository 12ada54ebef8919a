from sqlalchemy import select

from storefront.errors import DataAccessError
from storefront.models import CartItem, Product
from storefront.store import Store


async def cart_rows(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(select(CartItem).where(CartItem.user_id == user_id))
        return {row.product_id: row.quantity for row in result.scalars().all()}


async def test_add_inserts_then_increments(client, session_factory):
    first = await client.post("/api/cart/add", json={"user_id": 1, "product_id": 5, "quantity": 2})
    second = await client.post("/api/cart/add", json={"user_id": 1, "product_id": 5, "quantity": 3})

    assert first.json()["message"] == "Item added to cart"
    assert second.json()["message"] == "Item quantity updated"
    assert second.json()["body"]["quantity"] == 5
    assert await cart_rows(session_factory, 1) == {5: 5}


async def test_add_requires_all_fields(client):
    response = await client.post("/api/cart/add", json={"user_id": 1, "product_id": 5})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields"


async def test_get_cart_joins_products(client, seed):
    await seed(
        Product(id=5, name="Lamp", price=20),
        CartItem(user_id=1, product_id=5, quantity=1),
        CartItem(user_id=1, product_id=6, quantity=2),
    )

    response = await client.get("/api/cart", params={"user_id": 1})

    assert response.status_code == 200
    body = {item["product_id"]: item for item in response.json()["body"]}
    assert body[5]["product"]["name"] == "Lamp"
    assert body[6]["product"] is None


async def test_get_empty_cart_is_not_found(client):
    response = await client.get("/api/cart", params={"user_id": 1})

    assert response.status_code == 404
    assert response.json()["message"] == "No items in cart"


async def test_minus_decrements_and_removes(client, seed, session_factory):
    await seed(CartItem(user_id=1, product_id=5, quantity=3))

    decreased = await client.post("/api/cart/minus", json={"user_id": 1, "product_id": 5, "quantity": 1})
    assert decreased.json()["message"] == "Quantity decreased"
    assert decreased.json()["body"]["quantity"] == 2

    removed = await client.post("/api/cart/minus", json={"user_id": 1, "product_id": 5, "quantity": 2})
    assert removed.json()["message"] == "Item removed"
    assert await cart_rows(session_factory, 1) == {}


async def test_minus_unknown_item(client):
    response = await client.post("/api/cart/minus", json={"user_id": 1, "product_id": 5, "quantity": 1})

    assert response.status_code == 404


async def test_remove_and_clear(client, seed, session_factory):
    await seed(
        CartItem(user_id=1, product_id=5, quantity=1),
        CartItem(user_id=1, product_id=6, quantity=1),
        CartItem(user_id=2, product_id=5, quantity=1),
    )

    await client.post("/api/cart/remove", json={"user_id": 1, "product_id": 5})
    assert await cart_rows(session_factory, 1) == {6: 1}

    cleared = await client.post("/api/cart/clear", json={"user_id": 1})
    assert cleared.json()["message"] == "Cart cleared successfully"
    assert await cart_rows(session_factory, 1) == {}
    assert await cart_rows(session_factory, 2) == {5: 1}


async def test_clear_requires_user(client):
    response = await client.post("/api/cart/clear", json={})

    assert response.status_code == 400
    assert response.json()["message"] == "User ID is required"


async def test_checkout_removal_tolerates_invalid_pair(client, seed, session_factory):
    await seed(
        CartItem(user_id=1, product_id=5, quantity=1),
        CartItem(user_id=1, product_id=6, quantity=4),
    )

    response = await client.post(
        "/api/cart/remove-checkout",
        json={"items": [{"userId": "not-a-user", "productId": 6}, {"userId": 1, "productId": 5}]},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Checked-out items removed from cart"
    invalid, valid = response.json()["results"]
    assert invalid["removed"] is False
    assert invalid["error"]
    assert valid == {"userId": 1, "productId": 5, "removed": True, "error": None}
    assert await cart_rows(session_factory, 1) == {6: 4}


async def test_checkout_removal_reports_missing_entries(client):
    response = await client.post("/api/cart/remove-checkout", json={"items": [{"userId": 1, "productId": 9}]})

    assert response.status_code == 200
    assert response.json()["results"][0]["removed"] is False


async def test_checkout_removal_rejects_bad_format(client):
    missing = await client.post("/api/cart/remove-checkout", json={})
    not_a_list = await client.post("/api/cart/remove-checkout", json={"items": "everything"})

    assert missing.status_code == 400
    assert not_a_list.status_code == 400
    assert not_a_list.json()["message"] == "Invalid request format"


async def test_checkout_removal_tolerates_non_object_items(client, seed, session_factory):
    await seed(CartItem(user_id=1, product_id=5, quantity=1))

    response = await client.post("/api/cart/remove-checkout", json={"items": [None, "5", {"userId": 1, "productId": 5}]})

    assert response.status_code == 200
    null_item, string_item, valid = response.json()["results"]
    assert null_item["removed"] is False and null_item["error"] == "Invalid checkout item"
    assert string_item["removed"] is False
    assert valid["removed"] is True
    assert await cart_rows(session_factory, 1) == {}


async def test_checkout_removal_rejects_fractional_and_boolean_ids(client, seed, session_factory):
    await seed(CartItem(user_id=1, product_id=5, quantity=1))

    response = await client.post(
        "/api/cart/remove-checkout",
        json={"items": [{"userId": 1, "productId": 5.9}, {"userId": True, "productId": 5}]},
    )

    assert response.status_code == 200
    for result in response.json()["results"]:
        assert result["removed"] is False
        assert result["error"] == "Invalid userId or productId"
    assert await cart_rows(session_factory, 1) == {5: 1}


async def test_checkout_removal_accepts_numeric_strings(client, seed, session_factory):
    await seed(CartItem(user_id=1, product_id=5, quantity=1))

    response = await client.post("/api/cart/remove-checkout", json={"items": [{"userId": "1", "productId": " 5 "}]})

    assert response.json()["results"][0]["removed"] is True
    assert await cart_rows(session_factory, 1) == {}


async def test_checkout_removal_continues_after_store_failure(client, seed, session_factory, monkeypatch):
    await seed(
        CartItem(user_id=1, product_id=5, quantity=1),
        CartItem(user_id=1, product_id=6, quantity=1),
    )
    real_delete = Store.delete
    attempted = []

    async def flaky_delete(self, model, *criteria):
        attempted.append(len(attempted))
        if len(attempted) == 1:
            raise DataAccessError(error="deadlock detected")
        return await real_delete(self, model, *criteria)

    monkeypatch.setattr(Store, "delete", flaky_delete)

    response = await client.post(
        "/api/cart/remove-checkout",
        json={"items": [{"userId": 1, "productId": 5}, {"userId": 1, "productId": 6}]},
    )

    assert response.status_code == 200
    failed, removed = response.json()["results"]
    assert failed == {"userId": 1, "productId": 5, "removed": False, "error": "deadlock detected"}
    assert removed["removed"] is True
    assert await cart_rows(session_factory, 1) == {5: 1}
