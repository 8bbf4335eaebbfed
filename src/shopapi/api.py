"""FastAPI REST API for shopapi."""

from http import HTTPStatus
from typing import Any, Generic, Literal, Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, configure_logging
from .errors import BusinessRuleError, ConflictError, NotFoundError, ShopError
from .models import OrderStatus, PaymentMethod, PaymentStatus, ShippingMethod, UserRole, _utc_now
from .order_engine import OrderLine
from .services import Services, build_services

T = TypeVar("T")

SortOrder = Literal["asc", "desc"]


# --- Pydantic Schemas ---


class Envelope(BaseModel, Generic[T]):
    """Success wrapper around every response body."""

    status_code: int
    message: str
    data: T
    timestamp: str


class PageSchema(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int


class ErrorResponse(BaseModel):
    status_code: int
    message: str
    error: str
    error_type: str
    timestamp: str
    path: str


class HealthSchema(BaseModel):
    status: str
    version: str
    product_count: int
    user_count: int
    order_count: int


# --- Product Schemas ---


class ProductSchema(BaseModel):
    id: str
    name: str
    description: str
    price: int  # cents
    formatted_price: str
    category: str
    sku: Optional[str]
    stock: int
    in_stock: bool
    tags: list[str]
    image_url: Optional[str]
    is_active: bool
    created_at: str
    updated_at: str


class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: int = Field(..., ge=0, description="Unit price in cents")
    category: str = Field(..., min_length=1)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    stock: int = Field(default=0, ge=0)
    tags: list[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    is_active: bool = True


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    stock: Optional[int] = Field(None, ge=0)
    tags: Optional[list[str]] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class StockUpdateRequest(BaseModel):
    quantity: int = Field(..., description="Change in stock; negative to remove units")


# --- User Schemas ---


class UserSchema(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    phone_number: Optional[str]
    shipping_address: Optional[str]
    is_active: bool
    created_at: str
    updated_at: str


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreateRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.CUSTOMER
    phone_number: Optional[str] = None
    shipping_address: Optional[str] = None


class UserUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    phone_number: Optional[str] = None
    shipping_address: Optional[str] = None
    is_active: Optional[bool] = None


# --- Order Schemas ---


class OrderItemSchema(BaseModel):
    product_id: str
    product_name: str
    sku: Optional[str]
    quantity: int
    unit_price: int
    formatted_unit_price: str
    total_price: int
    formatted_total_price: str


class OrderSchema(BaseModel):
    id: str
    order_number: str
    user_id: str
    status: OrderStatus
    items: list[OrderItemSchema]
    subtotal: int
    tax_amount: int
    shipping_cost: int
    discount_amount: int
    total_amount: int
    formatted_total_amount: str
    shipping_address: str
    billing_address: Optional[str]
    shipping_method: ShippingMethod
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    coupon_code: Optional[str]
    notes: Optional[str]
    tracking_number: Optional[str]
    estimated_delivery_date: Optional[str]
    created_at: str
    updated_at: str


class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderCreateRequest(BaseModel):
    user_id: str
    items: list[OrderItemRequest]
    shipping_address: str = Field(..., min_length=1)
    billing_address: Optional[str] = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    coupon_code: Optional[str] = None
    notes: Optional[str] = None


class OrderUpdateRequest(BaseModel):
    """Either a status change (with tracking_number/notes) or a field edit."""

    status: Optional[OrderStatus] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    shipping_address: Optional[str] = Field(None, min_length=1)
    billing_address: Optional[str] = None
    shipping_method: Optional[ShippingMethod] = None


class InvoiceSchema(BaseModel):
    invoice_number: str
    order: OrderSchema
    generated_at: str


# --- Cart Schemas ---


class CartItemSchema(BaseModel):
    product_id: str
    product_name: str
    unit_price: int
    quantity: int
    line_total: int


class CartSchema(BaseModel):
    id: str
    items: list[CartItemSchema]
    total: int
    formatted_total: str
    created_at: str
    updated_at: str


class CartItemAddRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CartItemUpdateRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; zero or less removes the item")


# --- Helper Functions ---


def get_services(request: Request) -> Services:
    """Get the Services bound to the running application."""
    return request.app.state.services


def patch_changes(request: BaseModel, nullable: frozenset[str] = frozenset()) -> dict[str, Any]:
    """
    Fields the client sent in a PATCH body.

    An explicit null clears a nullable field; on any other field it is
    rejected with 400.
    """
    changes = request.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if value is None and key not in nullable:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")
    return changes


def respond(data: Any, message: str = "Success", status_code: int = 200) -> dict[str, Any]:
    """Wrap a payload in the response envelope."""
    return {
        "status_code": status_code,
        "message": message,
        "data": data,
        "timestamp": _utc_now(),
    }


# --- Global Exception Handlers ---


# Map exception categories to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    NotFoundError: 404,
    BusinessRuleError: 400,
    ConflictError: 409,
}


def _status_for(exc: ShopError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


def _error_body(request: Request, status_code: int, message: str, error_type: str) -> dict[str, Any]:
    return ErrorResponse(
        status_code=status_code,
        message=message,
        error=HTTPStatus(status_code).phrase,
        error_type=error_type,
        timestamp=_utc_now(),
        path=request.url.path,
    ).model_dump()


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """Map ShopError subclasses to appropriate HTTP responses."""
    status_code = _status_for(exc)
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, status_code, str(exc), type(exc).__name__),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 with the standard error body."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())[1:])
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse(
        status_code=400,
        content=_error_body(request, 400, "; ".join(problems), "RequestValidationError"),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, str(exc.detail), "HTTPException"),
        headers=getattr(exc, "headers", None),
    )


# --- Endpoints ---


router = APIRouter()


@router.get("/health", response_model=Envelope[HealthSchema])
def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    return respond(
        {
            "status": "ok",
            "version": __version__,
            "product_count": len(services.products),
            "user_count": len(services.users),
            "order_count": len(services.orders),
        }
    )


# --- Products ---


@router.post("/products", response_model=Envelope[ProductSchema], status_code=201)
def create_product(request: ProductCreateRequest, services: Services = Depends(get_services)):
    product = services.products.create(**request.model_dump())
    return respond(product.to_dict(), "Product created successfully", 201)


@router.get("/products", response_model=Envelope[PageSchema[ProductSchema]])
def list_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, description="Page size, capped at 100"),
    search: Optional[str] = Query(None, description="Substring of name or description"),
    category: Optional[str] = None,
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    is_active: Optional[bool] = None,
    sort_by: str = Query(default="created_at"),
    sort_order: SortOrder = Query(default="desc"),
    services: Services = Depends(get_services),
):
    result = services.products.list(
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return respond(result.to_dict())


@router.get("/products/categories", response_model=Envelope[list[str]])
def list_categories(services: Services = Depends(get_services)):
    return respond(services.products.categories())


@router.get("/products/{product_id}", response_model=Envelope[ProductSchema])
def get_product(product_id: str, services: Services = Depends(get_services)):
    return respond(services.products.get(product_id).to_dict())


@router.get("/products/{product_id}/related", response_model=Envelope[list[ProductSchema]])
def get_related_products(
    product_id: str,
    limit: int = Query(default=5, ge=1, le=20),
    services: Services = Depends(get_services),
):
    related = services.products.related(product_id, limit=limit)
    return respond([p.to_dict() for p in related])


@router.patch("/products/{product_id}", response_model=Envelope[ProductSchema])
def update_product(
    product_id: str, request: ProductUpdateRequest, services: Services = Depends(get_services)
):
    changes = patch_changes(request, nullable=frozenset({"sku", "image_url"}))
    product = services.products.update(product_id, **changes)
    return respond(product.to_dict(), "Product updated successfully")


@router.patch("/products/{product_id}/stock", response_model=Envelope[ProductSchema])
def update_product_stock(
    product_id: str, request: StockUpdateRequest, services: Services = Depends(get_services)
):
    product = services.products.adjust_stock(product_id, request.quantity)
    return respond(product.to_dict(), "Stock updated successfully")


@router.delete("/products/{product_id}", status_code=204, response_class=Response)
def delete_product(product_id: str, services: Services = Depends(get_services)):
    services.products.remove(product_id)
    return Response(status_code=204)


# --- Users ---


@router.post("/users", response_model=Envelope[UserSchema], status_code=201)
def create_user(request: UserCreateRequest, services: Services = Depends(get_services)):
    user = services.users.create(**request.model_dump())
    return respond(user.to_dict(), "User created successfully", 201)


@router.get("/users", response_model=Envelope[PageSchema[UserSchema]])
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    search: Optional[str] = Query(None, description="Substring of name or email"),
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    sort_by: str = Query(default="created_at"),
    sort_order: SortOrder = Query(default="desc"),
    services: Services = Depends(get_services),
):
    result = services.users.list(
        role=role,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return respond(result.to_dict())


@router.get("/users/{user_id}", response_model=Envelope[UserSchema])
def get_user(user_id: str, services: Services = Depends(get_services)):
    return respond(services.users.get(user_id).to_dict())


@router.patch("/users/{user_id}", response_model=Envelope[UserSchema])
def update_user(user_id: str, request: UserUpdateRequest, services: Services = Depends(get_services)):
    changes = patch_changes(request, nullable=frozenset({"phone_number", "shipping_address"}))
    user = services.users.update(user_id, **changes)
    return respond(user.to_dict(), "User updated successfully")


@router.delete("/users/{user_id}", status_code=204, response_class=Response)
def delete_user(user_id: str, services: Services = Depends(get_services)):
    services.users.remove(user_id)
    return Response(status_code=204)


# --- Orders ---


@router.post("/orders", response_model=Envelope[OrderSchema], status_code=201)
def create_order(request: OrderCreateRequest, services: Services = Depends(get_services)):
    order = services.orders.create(
        user_id=request.user_id,
        items=[OrderLine(product_id=i.product_id, quantity=i.quantity) for i in request.items],
        shipping_address=request.shipping_address,
        billing_address=request.billing_address,
        shipping_method=request.shipping_method,
        payment_method=request.payment_method,
        coupon_code=request.coupon_code,
        notes=request.notes,
    )
    return respond(order.to_dict(), "Order created successfully", 201)


@router.get("/orders", response_model=Envelope[PageSchema[OrderSchema]])
def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    user_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    date_from: Optional[str] = Query(None, description="ISO 8601 date or datetime, inclusive"),
    date_to: Optional[str] = Query(None, description="ISO 8601 date or datetime, inclusive"),
    min_amount: Optional[int] = Query(None, ge=0),
    max_amount: Optional[int] = Query(None, ge=0),
    sort_by: str = Query(default="created_at"),
    sort_order: SortOrder = Query(default="desc"),
    services: Services = Depends(get_services),
):
    result = services.orders.list(
        user_id=user_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return respond(result.to_dict())


@router.get("/orders/{order_id}", response_model=Envelope[OrderSchema])
def get_order(order_id: str, services: Services = Depends(get_services)):
    return respond(services.orders.get(order_id).to_dict())


@router.get("/orders/{order_id}/invoice", response_model=Envelope[InvoiceSchema])
def get_order_invoice(order_id: str, services: Services = Depends(get_services)):
    invoice = services.orders.invoice(order_id)
    invoice["order"] = invoice["order"].to_dict()
    return respond(invoice)


@router.patch("/orders/{order_id}", response_model=Envelope[OrderSchema])
def update_order(order_id: str, request: OrderUpdateRequest, services: Services = Depends(get_services)):
    """
    Change an order's status or edit its delivery details.

    A status change may carry tracking_number and notes. Address and
    shipping method edits are only accepted while the order is pending
    and cannot be combined with a status change.
    """
    changes = patch_changes(
        request, nullable=frozenset({"billing_address", "notes", "tracking_number"})
    )
    status = changes.pop("status", None)
    tracking_number = changes.pop("tracking_number", None)

    if status is not None:
        if set(changes) - {"notes"}:
            raise HTTPException(
                status_code=400,
                detail="Cannot change status and order fields in one request",
            )
        order = services.orders.update_status(
            order_id, status, tracking_number=tracking_number, notes=changes.get("notes")
        )
        return respond(order.to_dict(), f"Order status updated to {order.status.value}")

    if tracking_number is not None:
        raise HTTPException(
            status_code=400, detail="tracking_number can only be set with a status change"
        )
    order = services.orders.update(order_id, **changes)
    return respond(order.to_dict(), "Order updated successfully")


@router.patch("/orders/{order_id}/cancel", response_model=Envelope[OrderSchema])
def cancel_order(order_id: str, services: Services = Depends(get_services)):
    order = services.orders.cancel(order_id)
    return respond(order.to_dict(), "Order cancelled successfully")


# --- Carts ---


@router.post("/carts", response_model=Envelope[CartSchema], status_code=201)
def create_cart(services: Services = Depends(get_services)):
    return respond(services.carts.create().to_dict(), "Cart created successfully", 201)


@router.get("/carts/{cart_id}", response_model=Envelope[CartSchema])
def get_cart(cart_id: str, services: Services = Depends(get_services)):
    return respond(services.carts.get(cart_id).to_dict())


@router.post("/carts/{cart_id}/items", response_model=Envelope[CartSchema])
def add_cart_item(cart_id: str, request: CartItemAddRequest, services: Services = Depends(get_services)):
    cart = services.carts.add_item(cart_id, request.product_id, request.quantity)
    return respond(cart.to_dict(), "Item added to cart")


@router.put("/carts/{cart_id}/items/{product_id}", response_model=Envelope[CartSchema])
def update_cart_item(
    cart_id: str,
    product_id: str,
    request: CartItemUpdateRequest,
    services: Services = Depends(get_services),
):
    cart = services.carts.update_item(cart_id, product_id, request.quantity)
    return respond(cart.to_dict(), "Cart item updated")


@router.delete("/carts/{cart_id}/items/{product_id}", response_model=Envelope[CartSchema])
def remove_cart_item(cart_id: str, product_id: str, services: Services = Depends(get_services)):
    cart = services.carts.remove_item(cart_id, product_id)
    return respond(cart.to_dict(), "Item removed from cart")


@router.delete("/carts/{cart_id}/items", status_code=204, response_class=Response)
def clear_cart(cart_id: str, services: Services = Depends(get_services)):
    services.carts.clear(cart_id)
    return Response(status_code=204)


@router.delete("/carts/{cart_id}", status_code=204, response_class=Response)
def delete_cart(cart_id: str, services: Services = Depends(get_services)):
    services.carts.delete(cart_id)
    return Response(status_code=204)


# --- Application ---


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        services: Pre-built stores (for testing); built from settings when omitted.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    app = FastAPI(
        title="shopapi",
        description="In-memory e-commerce API: products, users, orders and carts",
        version=__version__,
    )
    app.state.settings = settings
    app.state.services = services or build_services(seed=settings.seed)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(router, prefix=settings.api_prefix.rstrip("/"))
    return app


app = create_app()
