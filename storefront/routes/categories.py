from fastapi import APIRouter, Depends

from storefront import schemas
from storefront.errors import DataAccessError, NotFoundError
from storefront.logger import logger
from storefront.models import Category, Product, ProductCategory
from storefront.store import Store, get_store

router = APIRouter(prefix="/category", tags=["Categories"])


async def product_ids_for_category(store: Store, category_id: int) -> list:
    links = await store.select(ProductCategory, ProductCategory.category_id == category_id)
    return [link.product_id for link in links]


@router.get("")
async def get_categories(store: Store = Depends(get_store)):
    try:
        categories = await store.select(Category, order_by=Category.name)
    except DataAccessError as e:
        logger.error("Error fetching categories", extra={"error": e.error})
        raise DataAccessError(e.error) from e

    if not categories:
        raise NotFoundError("No categories found")
    return {"categories": [schemas.Category.model_validate(c) for c in categories]}


@router.get("/product/{product_id}")
async def get_product_categories(product_id: int, store: Store = Depends(get_store)):
    try:
        links = await store.select(ProductCategory, ProductCategory.product_id == product_id)
        categories = await store.select(Category, Category.id.in_([link.category_id for link in links]))
    except DataAccessError as e:
        logger.error("Error fetching product categories", extra={"product_id": product_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if not categories:
        raise NotFoundError(f"No categories found for product with ID {product_id}")
    return [schemas.Category.model_validate(c) for c in categories]


@router.get("/cat_prod/{category_id}")
async def get_category_product_ids(category_id: int, store: Store = Depends(get_store)):
    try:
        product_ids = await product_ids_for_category(store, category_id)
    except DataAccessError as e:
        logger.error("Error fetching product IDs", extra={"category_id": category_id, "error": e.error})
        raise DataAccessError(e.error) from e

    if not product_ids:
        logger.info("No products for category", extra={"category_id": category_id})
        raise NotFoundError("No products found for the given category ID")
    return product_ids


@router.get("/cat_prod_info/{category_id}")
async def get_category_products(category_id: int, store: Store = Depends(get_store)):
    try:
        product_ids = await product_ids_for_category(store, category_id)
        if not product_ids:
            raise NotFoundError("No products found for the given category ID")
        products = await store.select(Product, Product.id.in_(product_ids))
    except DataAccessError as e:
        logger.error("Error fetching category products", extra={"category_id": category_id, "error": e.error})
        raise DataAccessError(e.error) from e

    return [schemas.Product.model_validate(p) for p in products]


@router.get("/{slug}/products")
async def get_products_by_slug(slug: str, store: Store = Depends(get_store)):
    try:
        category = await store.select_one(Category, Category.slug == slug)
    except DataAccessError as e:
        logger.error("Error fetching category", extra={"slug": slug, "error": e.error})
        raise NotFoundError("Category not found", e.error) from e
    if category is None:
        raise NotFoundError("Category not found")

    try:
        product_ids = await product_ids_for_category(store, category.id)
        products = await store.select(Product, Product.id.in_(product_ids)) if product_ids else []
    except DataAccessError as e:
        logger.error("Error fetching category products", extra={"slug": slug, "error": e.error})
        raise DataAccessError(e.error) from e

    return [schemas.Product.model_validate(p) for p in products]


@router.get("/{slug}")
async def get_category(slug: str, store: Store = Depends(get_store)):
    try:
        category = await store.select_one(Category, Category.slug == slug)
    except DataAccessError as e:
        logger.error("Error fetching category", extra={"slug": slug, "error": e.error})
        raise NotFoundError(e.error) from e

    if category is None:
        raise NotFoundError("Category not found")
    return schemas.Category.model_validate(category)
