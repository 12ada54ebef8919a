from typing import Optional

from fastapi import APIRouter, Depends

from storefront import schemas
from storefront.errors import DataAccessError, NotFoundError, ValidationError
from storefront.logger import logger
from storefront.models import Category, Product, ProductCategory
from storefront.store import Store, get_store

SEARCH_LIMIT = 10

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("")
async def get_products(store: Store = Depends(get_store)):
    try:
        products = await store.select(Product)
    except DataAccessError as e:
        logger.error("Error fetching products", extra={"error": e.error})
        raise DataAccessError(e.error) from e

    if not products:
        raise NotFoundError("No products found")
    logger.info("Products fetched", extra={"count": len(products)})
    return [schemas.Product.model_validate(p) for p in products]


@router.get("/prod_cat")
async def get_products_with_categories(store: Store = Depends(get_store)):
    """Every product with the names of its categories attached."""
    try:
        products = await store.select(Product)
        if not products:
            raise NotFoundError("No products found")

        links = await store.select(
            ProductCategory, ProductCategory.product_id.in_([p.id for p in products])
        )
        category_ids = sorted({link.category_id for link in links})
        categories = await store.select(Category, Category.id.in_(category_ids))
    except DataAccessError as e:
        logger.error("Error fetching products with categories", extra={"error": e.error})
        raise DataAccessError(e.error) from e

    names = {c.id: c.name for c in categories}
    result = []
    for product in products:
        related = [
            names.get(link.category_id, "Unknown Category")
            for link in links if link.product_id == product.id
        ]
        result.append(schemas.ProductWithCategories(
            **schemas.Product.model_validate(product).model_dump(),
            categories=related
        ))
    return result


@router.get("/search")
async def search_products(query: Optional[str] = None, store: Store = Depends(get_store)):
    if not query:
        raise ValidationError("Query parameter is required")

    try:
        products = await store.select(Product, Product.name.ilike(f"%{query}%"), limit=SEARCH_LIMIT)
    except DataAccessError as e:
        logger.error("Error searching products", extra={"query": query, "error": e.error})
        raise DataAccessError(e.error) from e

    if not products:
        raise NotFoundError("No products found")
    logger.info("Products searched", extra={"query": query, "count": len(products)})
    return [schemas.Product.model_validate(p) for p in products]


@router.get("/{product_id}")
async def get_product(product_id: int, store: Store = Depends(get_store)):
    try:
        product = await store.select_one(Product, Product.id == product_id)
    except DataAccessError as e:
        logger.error("Error fetching product", extra={"product_id": product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if product is None:
        logger.warning("Requested unknown product", extra={"product_id": product_id})
        raise NotFoundError(f"Product with ID {product_id} not found")
    return schemas.Product.model_validate(product)


@router.post("", status_code=201)
async def create_product(product: schemas.ProductCreate, store: Store = Depends(get_store)):
    try:
        created = await store.insert(Product, [product.model_dump()])
    except DataAccessError as e:
        logger.error("Error inserting product", extra={"product_name": product.name, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("Product created", extra={"product_id": created[0].id, "product_name": created[0].name})
    return {"message": "Product created", "createdProduct": schemas.Product.model_validate(created[0])}


@router.put("/{product_id}")
async def update_product(product_id: int, product: schemas.ProductUpdate, store: Store = Depends(get_store)):
    product_data = product.model_dump(exclude_unset=True)
    if not product_data:
        raise ValidationError("No fields to update")

    try:
        updated = await store.update(Product, product_data, Product.id == product_id)
    except DataAccessError as e:
        logger.error("Error updating product", extra={"product_id": product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if not updated:
        logger.warning("Attempt to update unknown product", extra={"product_id": product_id})
        raise NotFoundError(f"Product with ID {product_id} not found")

    logger.info("Product updated", extra={"product_id": product_id, "new_data": product_data})
    return {"message": "Product updated", "updatedProduct": schemas.Product.model_validate(updated[0])}


@router.delete("/{product_id}")
async def delete_product(product_id: int, store: Store = Depends(get_store)):
    try:
        await store.delete(ProductCategory, ProductCategory.product_id == product_id)
        await store.delete(Product, Product.id == product_id)
    except DataAccessError as e:
        logger.error("Error deleting product", extra={"product_id": product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    logger.info("Product deleted", extra={"product_id": product_id})
    return {"message": "Product deleted"}
