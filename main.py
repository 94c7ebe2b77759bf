import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Header, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings, load_settings
from database import (
    connect,
    create_document,
    ensure_indexes,
    get_documents,
    is_object_id,
    now_utc,
    sanitize,
    to_object_id,
)
from errors import (
    Conflict,
    Forbidden,
    InvalidToken,
    NotFound,
    Unauthenticated,
    ValidationFailed,
    register_error_handlers,
)
from moderation import APPROVED_FILTER, PENDING_FILTER, pending_fields, transition, with_status
from orders import OrderSubmission, validate_order
from policy import Action, authorize
from schemas import Product as ProductSchema, Review as ReviewSchema, Role, User as UserSchema
from security import Claims, authenticate, create_access_token, hash_password, peek_claims, verify_password
from uploads import UPLOAD_URL_PREFIX, ensure_upload_dir, remove_image, save_image

logger = logging.getLogger(__name__)

# Dependencies

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def current_claims(invalid_token_status: int = 400):
    def dep(authorization: Optional[str] = Header(None), settings: Settings = Depends(get_settings)) -> Claims:
        try:
            return authenticate(authorization, settings)
        except InvalidToken as exc:
            raise InvalidToken(exc.message, status_code=invalid_token_status)
    return dep


def require(action: Action, invalid_token_status: int = 400):
    """Dependency resolving the caller's Claims and checking them against `action`."""
    def dep(claims: Claims = Depends(current_claims(invalid_token_status))) -> Claims:
        return authorize(claims, action)
    return dep


def optional_claims(authorization: Optional[str] = Header(None),
                    settings: Settings = Depends(get_settings)) -> Optional[Claims]:
    return peek_claims(authorization, settings)


def submitter_claims(authorization: Optional[str] = Header(None),
                     settings: Settings = Depends(get_settings)) -> Optional[Claims]:
    # anonymous is fine, a presented token must be valid
    if not authorization:
        return None
    return authenticate(authorization, settings)


# Helpers

def find_or_404(db: Database, collection: str, id_str: str, message: str) -> Dict:
    doc = db[collection].find_one({"_id": to_object_id(id_str)})
    if not doc:
        raise NotFound(message)
    return doc


def attach_sellers(db: Database, products: List[Dict]) -> List[Dict]:
    ids = {p.get("seller") for p in products if is_object_id(p.get("seller"))}
    sellers = {}
    if ids:
        cursor = db["user"].find({"_id": {"$in": [to_object_id(i) for i in ids]}}, {"username": 1})
        sellers = {str(u["_id"]): {"id": str(u["_id"]), "username": u.get("username")} for u in cursor}
    for p in products:
        p["seller"] = sellers.get(p.get("seller"))
    return products


def seed_admin(db: Database, settings: Settings) -> None:
    if not (settings.admin_email and settings.admin_password):
        return
    email = settings.admin_email.lower()
    if db["user"].find_one({"email": email}):
        return
    doc = UserSchema(
        username="admin",
        email=email,
        password_hash=hash_password(settings.admin_password),
        role="admin",
    ).model_dump()
    create_document(db, "user", doc)
    logger.info("Created bootstrap admin %s", email)


# Request Models

class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    email: Optional[EmailStr] = None
    shop_name: Optional[str] = Field(None, alias="shopName")


class AdminUserUpdate(ProfileUpdate):
    role: Optional[Role] = None


class StockUpdate(BaseModel):
    stock: Optional[Any] = None


class StatusUpdate(BaseModel):
    status: Optional[Any] = None
    reason: Optional[str] = None


class ReviewRequest(BaseModel):
    comment: Optional[str] = None
    rating: Optional[Any] = None


INTEGER_RE = re.compile(r"-?[0-9]+")


def _as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not INTEGER_RE.fullmatch(value):
            return None
        return int(value)
    if isinstance(value, (int, float)) and float(value).is_integer():
        return int(value)
    return None


def _apply_user_updates(db: Database, user_id: str, body: ProfileUpdate) -> Dict:
    oid = to_object_id(user_id)
    updates = {k: v for k, v in body.model_dump().items() if v}
    if "email" in updates:
        updates["email"] = updates["email"].lower()
        if db["user"].find_one({"email": updates["email"], "_id": {"$ne": oid}}):
            raise Conflict("Email already in use")
    if not updates:
        user = db["user"].find_one({"_id": oid})
    else:
        updates["updated_at"] = now_utc()
        try:
            user = db["user"].find_one_and_update(
                {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise Conflict("Email already in use")
    if not user:
        raise NotFound("User not found")
    return sanitize(user)


def _set_user_status(db: Database, user_id: str, status: str) -> Dict:
    user = db["user"].find_one_and_update(
        {"_id": to_object_id(user_id)},
        {"$set": {"status": status, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFound("User not found")
    return sanitize(user)


# User Routes
users = APIRouter(prefix="/api/users")


@users.post("/register", status_code=201)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    if not (payload.username and payload.email and payload.password):
        raise ValidationFailed("All fields required")
    role = payload.role or "buyer"
    if role not in ("admin", "seller", "buyer"):
        raise ValidationFailed("Invalid role")
    email = payload.email.strip().lower()
    if db["user"].find_one({"email": email}):
        raise Conflict("Email already in use")
    try:
        user_doc = UserSchema(
            username=payload.username,
            email=email,
            password_hash=hash_password(payload.password),
            role=role,
        ).model_dump()
    except ValidationError:
        raise ValidationFailed("Invalid email address")
    try:
        uid = create_document(db, "user", user_doc)
    except DuplicateKeyError:
        raise Conflict("Email already in use")
    logger.info("Registered %s user %s", role, uid)
    return {"message": "Registered successfully", "id": uid}


@users.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    if not (payload.email and payload.password):
        raise ValidationFailed("All fields required")
    user = db["user"].find_one({"email": payload.email.strip().lower()})
    if not user:
        raise NotFound("User not found")
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise Unauthenticated("Invalid credentials")
    if user.get("status") == "blocked":
        raise Forbidden("Your account is blocked. Please contact support.")
    claims = Claims(id=str(user["_id"]), username=user.get("username", ""), role=user.get("role", "buyer"))
    token = create_access_token(claims, settings)
    return {"message": "Login successful", "user": claims.model_dump(), "token": token}


@users.get("/me")
def me(claims: Claims = Depends(require(Action.VIEW_PROFILE, invalid_token_status=403)),
       db: Database = Depends(get_db)):
    user = db["user"].find_one({"_id": to_object_id(claims.id)})
    if not user:
        raise NotFound("User not found")
    return sanitize(user)


@users.patch("/me")
def update_me(payload: ProfileUpdate,
              claims: Claims = Depends(require(Action.UPDATE_PROFILE, invalid_token_status=403)),
              db: Database = Depends(get_db)):
    user = _apply_user_updates(db, claims.id, payload)
    return {"message": "Profile updated", "user": user}


@users.get("")
def list_users(_: Claims = Depends(require(Action.LIST_USERS)), db: Database = Depends(get_db)):
    return [sanitize(u) for u in get_documents(db, "user")]


@users.get("/{user_id}")
def get_user(user_id: str, _: Claims = Depends(require(Action.VIEW_USER)), db: Database = Depends(get_db)):
    return sanitize(find_or_404(db, "user", user_id, "User not found"))


@users.patch("/{user_id}/block")
def block_user(user_id: str, _: Claims = Depends(require(Action.BLOCK_USER)), db: Database = Depends(get_db)):
    return {"message": "User blocked", "user": _set_user_status(db, user_id, "blocked")}


@users.patch("/{user_id}/unblock")
def unblock_user(user_id: str, _: Claims = Depends(require(Action.UNBLOCK_USER)), db: Database = Depends(get_db)):
    return {"message": "User unblocked", "user": _set_user_status(db, user_id, "active")}


@users.patch("/{user_id}")
def update_user(user_id: str, payload: AdminUserUpdate,
                _: Claims = Depends(require(Action.UPDATE_USER)), db: Database = Depends(get_db)):
    return {"message": "User updated", "user": _apply_user_updates(db, user_id, payload)}


@users.delete("/{user_id}")
def delete_user(user_id: str, _: Claims = Depends(require(Action.DELETE_USER)), db: Database = Depends(get_db)):
    res = db["user"].delete_one({"_id": to_object_id(user_id)})
    if res.deleted_count == 0:
        raise NotFound("User not found")
    return {"message": "User deleted"}


# Product Routes
products = APIRouter(prefix="/api/products")


@products.get("")
def list_products(approved_only: Optional[str] = Query(None, alias="approvedOnly"),
                  claims: Optional[Claims] = Depends(optional_claims),
                  db: Database = Depends(get_db)):
    authorize(claims, Action.BROWSE_LISTINGS)
    q = dict(APPROVED_FILTER) if approved_only == "true" else {}
    items = [sanitize(p) for p in get_documents(db, "product", q)]
    if claims is not None and claims.is_admin:
        attach_sellers(db, items)
    logger.debug("Found %d products", len(items))
    return [with_status(p) for p in items]


@products.get("/pending")
def list_pending(_: Claims = Depends(require(Action.VIEW_PENDING)), db: Database = Depends(get_db)):
    items = attach_sellers(db, [sanitize(p) for p in get_documents(db, "product", PENDING_FILTER)])
    return [with_status(p) for p in items]


@products.post("", status_code=201)
def create_product(
    name: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    stock: Optional[int] = Form(None),
    image_file: Optional[UploadFile] = File(None, alias="imageFile"),
    claims: Claims = Depends(require(Action.CREATE_LISTING)),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    image = save_image(image_file, settings) if image_file is not None and image_file.filename else ""
    doc = ProductSchema(
        name=name,
        category=category,
        price=price,
        image=image,
        description=description,
        stock=stock,
        seller=claims.id,
    ).model_dump()
    doc.update(pending_fields())
    try:
        pid = create_document(db, "product", doc)
    except PyMongoError:
        if image:
            remove_image(image, settings)
        raise
    logger.info("Seller %s submitted product %s for review", claims.id, pid)
    product = sanitize(db["product"].find_one({"_id": to_object_id(pid)}))
    return {"message": "Awaiting admin approval", "product": with_status(product)}


@products.get("/{product_id}")
def get_product(product_id: str, claims: Optional[Claims] = Depends(optional_claims),
                db: Database = Depends(get_db)):
    authorize(claims, Action.VIEW_LISTING)
    return with_status(sanitize(find_or_404(db, "product", product_id, "Product not found")))


@products.patch("/{product_id}/status")
def moderate_product(product_id: str, payload: StatusUpdate,
                     _: Claims = Depends(require(Action.MODERATE_LISTING)),
                     db: Database = Depends(get_db)):
    update = transition(payload.status, payload.reason)
    update["updated_at"] = now_utc()
    product = db["product"].find_one_and_update(
        {"_id": to_object_id(product_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not product:
        raise NotFound("Product not found")
    logger.info("Product %s %s", product_id, payload.status)
    return {"message": f"Product {payload.status}", "product": with_status(sanitize(product))}


@products.patch("/{product_id}")
def update_stock(product_id: str, payload: StockUpdate,
                 _: Claims = Depends(require(Action.PATCH_STOCK)),
                 db: Database = Depends(get_db)):
    stock = _as_count(payload.stock)
    if stock is None or stock < 0:
        raise ValidationFailed("Invalid stock value")
    product = db["product"].find_one_and_update(
        {"_id": to_object_id(product_id)},
        {"$set": {"stock": stock, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound("Product not found")
    return {"message": "Stock updated", "product": with_status(sanitize(product))}


@products.delete("/{product_id}")
def delete_product(product_id: str, claims: Claims = Depends(current_claims()),
                   db: Database = Depends(get_db)):
    product = find_or_404(db, "product", product_id, "Product not found")
    authorize(claims, Action.DELETE_LISTING, product.get("seller"))
    db["product"].delete_one({"_id": product["_id"]})
    logger.info("Seller %s deleted product %s", claims.id, product_id)
    return {"message": "Product deleted"}


@products.get("/{product_id}/reviews")
def list_reviews(product_id: str, claims: Optional[Claims] = Depends(optional_claims),
                 db: Database = Depends(get_db)):
    authorize(claims, Action.VIEW_REVIEWS)
    product = find_or_404(db, "product", product_id, "Product not found")
    return product.get("reviews") or []


@products.post("/{product_id}/reviews", status_code=201)
def add_review(product_id: str, payload: ReviewRequest,
               claims: Claims = Depends(require(Action.SUBMIT_REVIEW)),
               db: Database = Depends(get_db)):
    rating = _as_count(payload.rating)
    if rating is None or not 1 <= rating <= 5:
        raise ValidationFailed("Invalid rating")
    review = ReviewSchema(
        user=claims.id,
        username=claims.username,
        comment=payload.comment or "",
        rating=rating,
        created_at=now_utc(),
    ).model_dump()
    res = db["product"].update_one({"_id": to_object_id(product_id)}, {"$push": {"reviews": review}})
    if res.matched_count == 0:
        raise NotFound("Product not found")
    return {"message": "Review added", "review": review}


@products.get("/{product_id}/recommend")
def recommend(product_id: str, claims: Optional[Claims] = Depends(optional_claims),
              db: Database = Depends(get_db)):
    authorize(claims, Action.VIEW_RECOMMENDATIONS)
    product = find_or_404(db, "product", product_id, "Product not found")
    q = {"category": product.get("category"), "_id": {"$ne": product["_id"]}, **APPROVED_FILTER}
    return [with_status(sanitize(p)) for p in get_documents(db, "product", q, limit=5)]


# Order Routes
orders = APIRouter(prefix="/api/orders")


@orders.post("", status_code=201)
def create_order(payload: OrderSubmission, claims: Optional[Claims] = Depends(submitter_claims),
                 db: Database = Depends(get_db)):
    authorize(claims, Action.CREATE_ORDER)
    doc = validate_order(payload, user_id=claims.id if claims else None)
    oid = create_document(db, "order", doc)
    logger.info("Order saved: %s", oid)
    return {"message": "Order saved successfully", "order": sanitize(db["order"].find_one({"_id": to_object_id(oid)}))}


@orders.get("/{order_id}")
def get_order(order_id: str, claims: Optional[Claims] = Depends(optional_claims),
              db: Database = Depends(get_db)):
    authorize(claims, Action.VIEW_ORDER)
    order = sanitize(find_or_404(db, "order", order_id, "Order not found"))
    for line in order.get("products", []):
        pid = line.get("product_id")
        product = db["product"].find_one({"_id": to_object_id(pid)}) if is_object_id(pid) else None
        line["product"] = sanitize(product) if product else None
    return order


# App

def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_indexes(app.state.db)
        seed_admin(app.state.db, settings)
        logger.info("Marketplace API ready")
        yield

    app = FastAPI(title="Marketplace API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db if db is not None else connect(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    register_error_handlers(app)
    app.include_router(users)
    app.include_router(products)
    app.include_router(orders)
    app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=ensure_upload_dir(settings)), name="uploads")

    @app.get("/")
    def root():
        return {"message": "Marketplace API running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
