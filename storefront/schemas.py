from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, List, Optional


class UserSignup(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class User(BaseModel):
    id: int
    name: str
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryBase(BaseModel):
    name: str
    slug: str


class Category(CategoryBase):
    id: int

    class Config:
        from_attributes = True


class ProductBase(BaseModel):
    name: str
    price: float = Field(ge=0)
    description: Optional[str] = None
    image: Optional[str] = None
    stock: Optional[int] = Field(default=0, ge=0)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(ProductBase):
    name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)


class Product(ProductBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductWithCategories(Product):
    categories: List[str] = []


class CartItemChange(BaseModel):
    user_id: Optional[int] = None
    product_id: Optional[int] = None
    quantity: Optional[int] = Field(default=None, gt=0)


class CartItemRef(BaseModel):
    user_id: Optional[int] = None
    product_id: Optional[int] = None


class CartClear(BaseModel):
    user_id: Optional[int] = None


class CheckoutRemoval(BaseModel):
    # elements are checked one by one so a bad pair cannot fail the batch
    items: Optional[List[Any]] = None


class CartItem(BaseModel):
    id: int
    user_id: int
    product_id: int
    quantity: int

    class Config:
        from_attributes = True


class CartItemWithProduct(CartItem):
    product: Optional[Product] = None


class OrderItemIn(BaseModel):
    """Line item as sent by the client; stored verbatim as the purchase snapshot."""
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    price: Optional[float] = None
    image: Optional[str] = None


class OrderCreate(BaseModel):
    user_id: Optional[int] = None
    pay_type: Optional[str] = None
    total: Optional[float] = None
    items: Optional[List[OrderItemIn]] = None
    status: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    user_id: Optional[int] = None
    order_id: Optional[int] = None
    status: Optional[str] = None


class OrderDetail(BaseModel):
    id: int
    order_id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: float
    image: Optional[str] = None

    class Config:
        from_attributes = True


class Order(BaseModel):
    order_id: int
    user_id: int
    pay_type: str
    status: str
    total: float
    created_at: datetime

    class Config:
        from_attributes = True


class OrderWithItems(Order):
    items: List[OrderDetail] = []


class CheckoutRemovalResult(BaseModel):
    userId: Any = None
    productId: Any = None
    removed: bool
    error: Optional[str] = None
