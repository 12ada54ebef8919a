from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import StrictInt, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from storefront import schemas
from storefront.errors import DataAccessError, NotFoundError, ValidationError, require_fields
from storefront.logger import logger
from storefront.models import CartItem, Product
from storefront.store import Store, get_store

router = APIRouter(prefix="/cart", tags=["Cart"])


def _entry(user_id, product_id):
    return CartItem.user_id == user_id, CartItem.product_id == product_id


@router.get("")
async def get_cart(user_id: Optional[int] = None, store: Store = Depends(get_store)):
    if user_id is None:
        raise ValidationError("User ID is required")

    try:
        cart_items = await store.select(CartItem, CartItem.user_id == user_id)
    except DataAccessError as e:
        logger.error("Error fetching cart", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if not cart_items:
        raise NotFoundError("No items in cart")

    try:
        products = await store.select(Product, Product.id.in_([item.product_id for item in cart_items]))
    except DataAccessError as e:
        logger.error("Error fetching cart products", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError(e.error) from e

    products_by_id = {p.id: schemas.Product.model_validate(p) for p in products}
    body = [
        schemas.CartItemWithProduct(
            **schemas.CartItem.model_validate(item).model_dump(),
            product=products_by_id.get(item.product_id)
        )
        for item in cart_items
    ]
    logger.info("Cart fetched", extra={"user_id": user_id, "items_count": len(body)})
    return {"code": 200, "body": body}


@router.post("/add")
async def add_item(item: schemas.CartItemChange, store: Store = Depends(get_store)):
    require_fields(item, "user_id", "product_id", "quantity")

    try:
        existing = await store.select_one(CartItem, *_entry(item.user_id, item.product_id))
        if existing:
            updated = await store.update(
                CartItem, {"quantity": existing.quantity + item.quantity}, *_entry(item.user_id, item.product_id)
            )
            logger.info(
                "Cart item quantity updated",
                extra={"user_id": item.user_id, "product_id": item.product_id, "quantity": updated[0].quantity}
            )
            return {"code": 200, "message": "Item quantity updated", "body": schemas.CartItem.model_validate(updated[0])}

        created = await store.insert(CartItem, [item.model_dump()])
    except DataAccessError as e:
        logger.error("Error adding cart item", extra={"user_id": item.user_id, "product_id": item.product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("Cart item added", extra={"user_id": item.user_id, "product_id": item.product_id})
    return {"code": 200, "message": "Item added to cart", "body": schemas.CartItem.model_validate(created[0])}


@router.post("/minus")
async def decrease_item(item: schemas.CartItemChange, store: Store = Depends(get_store)):
    require_fields(item, "user_id", "product_id", "quantity")

    try:
        existing = await store.select_one(CartItem, *_entry(item.user_id, item.product_id))
        if existing is None:
            raise NotFoundError("Item not found")

        if existing.quantity <= item.quantity:
            await store.delete(CartItem, *_entry(item.user_id, item.product_id))
            logger.info("Cart item removed", extra={"user_id": item.user_id, "product_id": item.product_id})
            return {"code": 200, "message": "Item removed"}

        updated = await store.update(
            CartItem, {"quantity": existing.quantity - item.quantity}, *_entry(item.user_id, item.product_id)
        )
    except DataAccessError as e:
        logger.error("Error decreasing cart item", extra={"user_id": item.user_id, "product_id": item.product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    return {"code": 200, "message": "Quantity decreased", "body": schemas.CartItem.model_validate(updated[0])}


@router.post("/remove")
async def remove_item(item: schemas.CartItemRef, store: Store = Depends(get_store)):
    require_fields(item, "user_id", "product_id")

    try:
        await store.delete(CartItem, *_entry(item.user_id, item.product_id))
    except DataAccessError as e:
        logger.error("Error removing cart item", extra={"user_id": item.user_id, "product_id": item.product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("Cart item removed", extra={"user_id": item.user_id, "product_id": item.product_id})
    return {"code": 200, "message": "Item removed from cart"}


@router.post("/clear")
async def clear_cart(cart: schemas.CartClear, store: Store = Depends(get_store)):
    require_fields(cart, "user_id", message="User ID is required")

    try:
        removed = await store.delete(CartItem, CartItem.user_id == cart.user_id)
    except DataAccessError as e:
        logger.error("Error clearing cart", extra={"user_id": cart.user_id, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("Cart cleared", extra={"user_id": cart.user_id, "items_count": removed})
    return {"code": 200, "message": "Cart cleared successfully"}


_strict_id = TypeAdapter(StrictInt)


def parse_id(value) -> int:
    # whole numbers only; 5.9 and true are rejected rather than coerced
    if isinstance(value, str):
        value = value.strip()
        if value.lstrip("-").isdigit():
            return int(value)
    return _strict_id.validate_python(value)


async def remove_checkout_pair(store: Store, pair: Any) -> schemas.CheckoutRemovalResult:
    if not isinstance(pair, dict):
        result = schemas.CheckoutRemovalResult(removed=False, error="Invalid checkout item")
        logger.error("Error removing checked-out item", extra={"item": repr(pair), "error": result.error})
        return result

    raw_user_id, raw_product_id = pair.get("userId"), pair.get("productId")
    result = schemas.CheckoutRemovalResult(userId=raw_user_id, productId=raw_product_id, removed=False)
    try:
        user_id, product_id = parse_id(raw_user_id), parse_id(raw_product_id)
    except PydanticValidationError:
        result.error = "Invalid userId or productId"
    else:
        try:
            result.removed = await store.delete(CartItem, *_entry(user_id, product_id)) > 0
        except DataAccessError as e:
            result.error = e.error

    if result.error:
        logger.error(
            "Error removing checked-out item",
            extra={"user_id": raw_user_id, "product_id": raw_product_id, "error": result.error}
        )
    return result


@router.post("/remove-checkout")
async def remove_checkout_items(removal: schemas.CheckoutRemoval, store: Store = Depends(get_store)):
    """Drop purchased entries from the cart, one pair at a time.

    Failed pairs are logged and reported in ``results``; they never fail the
    request.
    """
    if removal.items is None:
        raise ValidationError("Invalid request format")

    results = [await remove_checkout_pair(store, pair) for pair in removal.items]

    logger.info(
        "Checked-out items removed",
        extra={"requested": len(results), "removed": sum(1 for r in results if r.removed)}
    )
    return {"code": 200, "message": "Checked-out items removed from cart", "results": results}
