"""
FastAPI Application Entry Point

Hotel Bill Manager - menu management, bill composition and bill history.
Supports both a mock auth service (development) and a hosted auth
service (staging/production).

Endpoints:
    - POST /auth/sign-in, /auth/sign-out: Session lifecycle
    - GET /api/me: Current user, role and navigation
    - /api/menu: Menu catalog (writes are admin-only)
    - /api/cart: The bill being composed in this session
    - /api/bills: Submit the cart, browse bill history
    - GET /health: System health check
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from hotel_billing.billing import BillComposer, CustomerDetails, MenuItemRef, to_money
from hotel_billing.core.config import get_settings, setup_logging
from hotel_billing.core.exceptions import AuthError, BillingError, ValidationError
from hotel_billing.core.session import SessionRegistry, SessionState
from hotel_billing.database import async_session_maker, engine, get_db, init_db
from hotel_billing.deps import (
    get_access_token,
    get_auth,
    get_bill_store,
    get_menu_store,
    get_role_store,
    get_session_registry,
    get_session_state,
    require_admin,
)
from hotel_billing.models import MenuCategory
from hotel_billing.schemas import (
    BillCreateResponse,
    BillDetailResponse,
    BillItemResponse,
    BillListResponse,
    BillResponse,
    CartAddRequest,
    CartLineResponse,
    CartQuantityRequest,
    CartResponse,
    CustomerFields,
    ErrorResponse,
    HealthResponse,
    MenuItemCreate,
    MenuItemMutationResponse,
    MenuItemResponse,
    MenuItemUpdate,
    MenuListResponse,
    MessageResponse,
    NavItem,
    ProfileResponse,
    SessionResponse,
    SignInRequest,
)
from hotel_billing.services.auth import BaseAuthService, get_auth_service, mock_user_id
from hotel_billing.services.storage import (
    BaseBillStore,
    BaseMenuStore,
    BaseRoleStore,
    MenuFilter,
    SqlAlchemyRoleStore,
)
from hotel_billing.tasks import export_bill_to_excel

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

async def seed_mock_roles() -> None:
    """Give the development accounts from MOCK_AUTH_USERS their roles."""
    async with async_session_maker() as db:
        roles = SqlAlchemyRoleStore(db)
        for email, _, role in settings.mock_auth_users_list:
            await roles.set_role(mock_user_id(email), role)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize database
    await init_db()
    logger.info("✅ Database initialized")

    # Session registry, kept in sync with the auth service
    registry = SessionRegistry(
        tax_rate=settings.tax_rate,
        bill_number_prefix=settings.bill_number_prefix,
    )
    app.state.sessions = registry

    auth_service = get_auth_service()
    unsubscribe = auth_service.on_session_change(registry.handle_session_change)
    logger.info(f"✅ Auth Service: {auth_service.provider_name}")

    if settings.is_development:
        await seed_mock_roles()
        logger.info(f"✅ Seeded roles for {len(settings.mock_auth_users_list)} mock account(s)")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    unsubscribe()
    aclose = getattr(auth_service, "aclose", None)
    if aclose is not None:
        await aclose()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Billing for a hotel restaurant: menu management, bill composition "
        "with tax, and a searchable bill history."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def build_cart_response(composer: BillComposer, message: Optional[str] = None) -> CartResponse:
    """Cart lines and totals, rounded for display."""
    subtotal = composer.compute_subtotal()
    tax = composer.compute_tax()
    return CartResponse(
        lines=[
            CartLineResponse(
                menu_item_id=line.item.id,
                name=line.item.name,
                category=line.item.category,
                unit_price=to_money(line.item.price),
                quantity=line.quantity,
                line_total=to_money(line.line_total),
            )
            for line in composer.lines
        ],
        line_count=len(composer.lines),
        subtotal=to_money(subtotal),
        tax_rate=composer.tax_rate,
        tax=to_money(tax),
        total=to_money(subtotal + tax),
        customer_name=composer.customer.customer_name,
        customer_phone=composer.customer.customer_phone,
        room_number=composer.customer.room_number,
        payment_method=composer.payment_method,
        is_submitting=composer.is_submitting,
        message=message,
    )


def build_navigation(is_admin: bool) -> list[NavItem]:
    """Screens offered to the user; menu management is listed for admins only."""
    navigation = [NavItem(label="New Bill", path="/bills/new")]
    if is_admin:
        navigation.append(NavItem(label="Menu Items", path="/menu"))
    navigation.append(NavItem(label="Bills History", path="/bills"))
    return navigation


def group_by_category(items: list[MenuItemResponse]) -> dict[str, list[MenuItemResponse]]:
    """Group menu items in category order; empty categories are left out."""
    grouped: dict[str, list[MenuItemResponse]] = {}
    for category in MenuCategory:
        in_category = [item for item in items if item.category == category.value]
        if in_category:
            grouped[category.value] = in_category
    # Categories created outside the fixed list still show up
    for item in items:
        if item.category not in MenuCategory.values():
            grouped.setdefault(item.category, []).append(item)
    return grouped


def build_bill_detail(bill: Any, items: list) -> BillDetailResponse:
    header = BillResponse.model_validate(bill)
    return BillDetailResponse(
        **header.model_dump(),
        items=[BillItemResponse.model_validate(item) for item in items],
    )


def queue_ledger_export(detail: BillDetailResponse) -> None:
    """
    Queue the Excel ledger export for a new bill.

    The bill is already stored, so a broker failure is only logged.
    """
    if not settings.export_bills_to_excel:
        return
    try:
        export_bill_to_excel.delay(detail.model_dump(mode="json"))
    except Exception as e:
        logger.warning(f"Could not queue ledger export for {detail.bill_number}: {e}")


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🏨 Welcome to {settings.app_name}",
        "hotel": settings.hotel_name,
        "currency": settings.currency_symbol,
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "sign_in": "/auth/sign-in",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    auth: BaseAuthService = Depends(get_auth),
) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check Redis
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    # Check auth service
    try:
        auth_status = "healthy" if await auth.health_check() else "unhealthy"
    except Exception as e:
        auth_status = f"unhealthy: {str(e)}"
        logger.error(f"Auth health check failed: {e}")

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, auth_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        auth_service=auth_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post(
    "/auth/sign-in",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Auth"],
    summary="Sign In",
)
async def sign_in(
    credentials: SignInRequest,
    auth: BaseAuthService = Depends(get_auth),
    roles: BaseRoleStore = Depends(get_role_store),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Exchange email and password for a bearer token."""
    session = await auth.sign_in(credentials.email.strip(), credentials.password)
    role = await roles.get_role(session.user_id)
    state = registry.start(session, role)

    return SessionResponse(
        access_token=session.access_token,
        user_id=session.user_id,
        email=session.email,
        expires_at=session.expires_at,
        role=role,
        role_label=state.context.role_label,
    )


@app.post(
    "/auth/sign-out",
    response_model=MessageResponse,
    tags=["Auth"],
    summary="Sign Out",
)
async def sign_out(
    access_token: str = Depends(get_access_token),
    auth: BaseAuthService = Depends(get_auth),
    registry: SessionRegistry = Depends(get_session_registry),
) -> MessageResponse:
    """End the session; its unsubmitted cart is discarded."""
    await auth.sign_out(access_token)
    registry.invalidate(access_token)
    return MessageResponse(message="Signed out")


@app.get(
    "/api/me",
    response_model=ProfileResponse,
    tags=["Auth"],
)
async def get_profile(state: SessionState = Depends(get_session_state)) -> ProfileResponse:
    """The signed-in user, their role label and navigation."""
    context = state.context
    return ProfileResponse(
        user_id=context.user_id,
        email=context.email,
        role=context.role,
        role_label=context.role_label,
        is_admin=context.is_admin,
        navigation=build_navigation(context.is_admin),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get(
    "/api/menu",
    response_model=MenuListResponse,
    tags=["Menu"],
    summary="List Menu Items",
)
async def list_menu(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    available_only: bool = Query(False),
    state: SessionState = Depends(get_session_state),
    menu: BaseMenuStore = Depends(get_menu_store),
) -> MenuListResponse:
    """Menu ordered by category then name, also grouped by category."""
    if category and category.lower() != "all":
        if category not in MenuCategory.values():
            raise ValidationError(f"Invalid category. Options: {MenuCategory.values()}")
    else:
        category = None

    items = await menu.list_items(
        MenuFilter(available_only=available_only, category=category, search=search or None)
    )
    responses = [MenuItemResponse.model_validate(item) for item in items]

    return MenuListResponse(
        total=len(responses),
        items=responses,
        by_category=group_by_category(responses),
    )


@app.get("/api/menu/categories", tags=["Menu"])
async def list_categories(state: SessionState = Depends(get_session_state)) -> list[str]:
    return MenuCategory.values()


@app.post(
    "/api/menu",
    response_model=MenuItemMutationResponse,
    status_code=201,
    responses={403: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Add Menu Item",
)
async def create_menu_item(
    payload: MenuItemCreate,
    state: SessionState = Depends(require_admin),
    menu: BaseMenuStore = Depends(get_menu_store),
) -> MenuItemMutationResponse:
    item = await menu.create(payload.model_dump(mode="python") | {"category": payload.category.value})
    return MenuItemMutationResponse(
        message="Item added successfully!",
        item=MenuItemResponse.model_validate(item),
    )


@app.put(
    "/api/menu/{item_id}",
    response_model=MenuItemMutationResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Update Menu Item",
)
async def update_menu_item(
    item_id: str,
    payload: MenuItemUpdate,
    state: SessionState = Depends(require_admin),
    menu: BaseMenuStore = Depends(get_menu_store),
) -> MenuItemMutationResponse:
    item = await menu.update(item_id, payload.model_dump(mode="python") | {"category": payload.category.value})
    return MenuItemMutationResponse(
        message="Item updated successfully!",
        item=MenuItemResponse.model_validate(item),
    )


@app.delete(
    "/api/menu/{item_id}",
    response_model=MessageResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Delete Menu Item",
)
async def delete_menu_item(
    item_id: str,
    state: SessionState = Depends(require_admin),
    menu: BaseMenuStore = Depends(get_menu_store),
) -> MessageResponse:
    """Delete a menu item. Issued bills keep their item snapshots."""
    await menu.delete(item_id)
    return MessageResponse(message="Item deleted successfully!")


# =============================================================================
# CART ENDPOINTS
# =============================================================================

@app.get("/api/cart", response_model=CartResponse, tags=["Cart"])
async def get_cart(state: SessionState = Depends(get_session_state)) -> CartResponse:
    return build_cart_response(state.composer)


@app.post(
    "/api/cart/items",
    response_model=CartResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Cart"],
    summary="Add Item To Cart",
)
async def add_to_cart(
    payload: CartAddRequest,
    state: SessionState = Depends(get_session_state),
    menu: BaseMenuStore = Depends(get_menu_store),
) -> CartResponse:
    """Add one unit of a menu item; adding it again raises its quantity."""
    item = await menu.get(payload.menu_item_id)
    if not item.available:
        raise ValidationError(f"{item.name} is not available")

    state.composer.add(MenuItemRef.from_model(item))
    return build_cart_response(state.composer, message=f"{item.name} added")


@app.patch(
    "/api/cart/items/{menu_item_id}",
    response_model=CartResponse,
    tags=["Cart"],
    summary="Change Quantity",
)
async def change_cart_quantity(
    menu_item_id: str,
    payload: CartQuantityRequest,
    state: SessionState = Depends(get_session_state),
) -> CartResponse:
    """Shift a line's quantity; a line that reaches zero is removed."""
    state.composer.change_quantity(menu_item_id, payload.delta)
    return build_cart_response(state.composer)


@app.delete(
    "/api/cart/items/{menu_item_id}",
    response_model=CartResponse,
    tags=["Cart"],
    summary="Remove Cart Line",
)
async def remove_cart_line(
    menu_item_id: str,
    state: SessionState = Depends(get_session_state),
) -> CartResponse:
    state.composer.remove(menu_item_id)
    return build_cart_response(state.composer)


@app.put("/api/cart/customer", response_model=CartResponse, tags=["Cart"])
async def set_cart_customer(
    payload: CustomerFields,
    state: SessionState = Depends(get_session_state),
) -> CartResponse:
    """Store the draft customer details and payment method."""
    state.composer.set_customer(
        CustomerDetails(
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            room_number=payload.room_number,
        ),
        payment_method=payload.payment_method.value if payload.payment_method else None,
    )
    return build_cart_response(state.composer)


@app.delete("/api/cart", response_model=CartResponse, tags=["Cart"], summary="Cancel Bill")
async def clear_cart(state: SessionState = Depends(get_session_state)) -> CartResponse:
    state.composer.clear()
    return build_cart_response(state.composer, message="Bill cancelled")


# =============================================================================
# BILL ENDPOINTS
# =============================================================================

@app.post(
    "/api/bills",
    response_model=BillCreateResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    tags=["Bills"],
    summary="Create Bill From Cart",
)
async def create_bill(
    payload: Optional[CustomerFields] = Body(None),
    state: SessionState = Depends(get_session_state),
    bills: BaseBillStore = Depends(get_bill_store),
) -> BillCreateResponse:
    """
    Persist the session's cart as a bill and clear the cart.

    Customer fields sent in the body take precedence over the draft
    stored with PUT /api/cart/customer.
    """
    customer = None
    payment_method = None
    if payload is not None:
        customer = CustomerDetails(
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            room_number=payload.room_number,
        )
        payment_method = payload.payment_method.value if payload.payment_method else None

    submitted = await state.composer.submit(
        bills,
        created_by=state.context.user_id,
        customer=customer,
        payment_method=payment_method,
    )

    detail = build_bill_detail(submitted.bill, submitted.items)
    queue_ledger_export(detail)

    return BillCreateResponse(
        message="Bill created successfully!",
        bill_number=detail.bill_number,
        bill=detail,
    )


@app.get(
    "/api/bills",
    response_model=BillListResponse,
    tags=["Bills"],
    summary="Bill History",
)
async def list_bills(
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    state: SessionState = Depends(get_session_state),
    bills: BaseBillStore = Depends(get_bill_store),
) -> BillListResponse:
    """Bills newest first; search matches bill number, customer name or room."""
    total, page = await bills.list_bills(search=search, skip=skip, limit=limit)
    return BillListResponse(
        total=total,
        bills=[BillResponse.model_validate(bill) for bill in page],
    )


@app.get(
    "/api/bills/{bill_id}",
    response_model=BillDetailResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Bills"],
)
async def get_bill(
    bill_id: str,
    state: SessionState = Depends(get_session_state),
    bills: BaseBillStore = Depends(get_bill_store),
) -> BillDetailResponse:
    """A bill with its items in cart order."""
    bill = await bills.get_bill(bill_id)
    items = await bills.list_bill_items(bill_id)
    return build_bill_detail(bill, items)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Turn domain errors into JSON with their HTTP status."""
    content = exc.to_dict()
    headers = None

    if isinstance(exc, AuthError):
        content["redirect_to"] = exc.redirect_to or settings.auth_redirect_path
        headers = {"WWW-Authenticate": "Bearer"}
        logger.info(f"{request.method} {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("hotel_billing.main:app", host=settings.api_host, port=settings.api_port)
