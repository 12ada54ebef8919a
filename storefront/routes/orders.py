"""Order placement, status updates and per-user order history.

Placement is two independently committed writes: the order header, then its
line items in one batch. If the second write fails the header is left in
place without items; nothing is rolled back.
"""
import os
from collections import defaultdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from storefront import schemas
from storefront.errors import ConflictError, DataAccessError, NotFoundError, ValidationError, require_fields
from storefront.logger import logger
from storefront.models import Order, OrderDetail
from storefront.store import Store, get_store

ORDER_ID_RETRIES = int(os.getenv("ORDER_ID_RETRIES", "3"))
DEFAULT_STATUS = "to-pay"

router = APIRouter(prefix="/order", tags=["Orders"])


async def next_order_id(store: Store) -> int:
    """Highest order_id across all users plus one, or 1 for an empty table."""
    latest = await store.select(Order, order_by=Order.order_id, descending=True, limit=1)
    return latest[0].order_id + 1 if latest else 1


async def insert_order_header(store: Store, order: schemas.OrderCreate) -> Order:
    # A concurrent placement may take the same id first; the primary key
    # rejects ours and we scan again.
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(ConflictError),
        stop=stop_after_attempt(ORDER_ID_RETRIES),
        reraise=True
    )
    try:
        async for attempt in retrying:
            with attempt:
                try:
                    order_id = await next_order_id(store)
                except DataAccessError as e:
                    logger.error("Error fetching max order ID", extra={"user_id": order.user_id, "error": e.error})
                    raise DataAccessError("Error fetching order information", e.error) from e

                try:
                    created = await store.insert(Order, [{
                        "order_id": order_id,
                        "user_id": order.user_id,
                        "pay_type": order.pay_type,
                        "status": order.status or DEFAULT_STATUS,
                        "total": order.total,
                        "created_at": datetime.utcnow(),
                    }])
                except ConflictError:
                    logger.warning(
                        "Order id already taken",
                        extra={"order_id": order_id, "attempt": attempt.retry_state.attempt_number}
                    )
                    raise
                except DataAccessError as e:
                    logger.error("Error inserting order", extra={"order_id": order_id, "error": e.error})
                    raise DataAccessError("Error creating order", e.error) from e
    except ConflictError as e:
        logger.error("Error inserting order", extra={"user_id": order.user_id, "error": e.error})
        raise DataAccessError("Error creating order", e.error) from e
    return created[0]


@router.post("/add", status_code=201)
async def add_order(order: schemas.OrderCreate, store: Store = Depends(get_store)):
    require_fields(order, "user_id", "pay_type", "total", "items")

    db_order = await insert_order_header(store, order)
    order_id = db_order.order_id

    order_details = [
        {
            "order_id": order_id,
            "product_id": item.product_id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "price": item.price,
            "image": item.image,
        }
        for item in order.items
    ]
    try:
        await store.insert(OrderDetail, order_details)
    except DataAccessError as e:
        logger.error(
            "Error inserting order details",
            extra={"order_id": order_id, "items_count": len(order_details), "error": e.error}
        )
        raise DataAccessError("Error adding order details", e.error) from e

    logger.info(
        "Order created",
        extra={"order_id": order_id, "user_id": db_order.user_id, "items_count": len(order_details)}
    )
    return {"message": "Order added successfully", "body": schemas.Order.model_validate(db_order)}


@router.post("/update")
async def update_order_status(update: schemas.OrderStatusUpdate, store: Store = Depends(get_store)):
    require_fields(update, "user_id", "order_id", "status")

    scope = (Order.user_id == update.user_id, Order.order_id == update.order_id)
    try:
        db_order = await store.select_one(Order, *scope)
    except DataAccessError as e:
        raise NotFoundError("Order not found", e.error) from e
    if db_order is None:
        logger.warning("Status update for unknown order", extra={"order_id": update.order_id, "user_id": update.user_id})
        raise NotFoundError("Order not found", "Order not found")

    # any status string is accepted; transitions are not checked
    try:
        updated = await store.update(Order, {"status": update.status}, *scope)
    except DataAccessError as e:
        logger.error("Error updating order", extra={"order_id": update.order_id, "error": e.error})
        raise DataAccessError("Error updating order", e.error) from e

    logger.info(
        "Order status updated",
        extra={"order_id": update.order_id, "old_status": db_order.status, "status": update.status}
    )
    return {"message": "Order status updated", "body": schemas.Order.model_validate(updated[0])}


@router.get("")
async def get_orders(user_id: Optional[int] = None, store: Store = Depends(get_store)):
    if user_id is None:
        raise ValidationError("User ID is required")

    try:
        orders = await store.select(Order, Order.user_id == user_id)
    except DataAccessError as e:
        logger.error("Error fetching orders", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError("Error fetching orders", e.error) from e

    try:
        details = await store.select(OrderDetail, OrderDetail.order_id.in_([o.order_id for o in orders]))
    except DataAccessError as e:
        logger.error("Error fetching order details", extra={"user_id": user_id, "error": e.error})
        raise DataAccessError("Error fetching order details", e.error) from e

    items_by_order = defaultdict(list)
    for detail in details:
        items_by_order[detail.order_id].append(schemas.OrderDetail.model_validate(detail))

    enriched = [
        schemas.OrderWithItems(
            **schemas.Order.model_validate(o).model_dump(),
            items=items_by_order.get(o.order_id, [])
        )
        for o in orders
    ]
    logger.info("Orders fetched", extra={"user_id": user_id, "orders_count": len(enriched)})
    return {"message": "Orders fetched successfully", "body": enriched}
