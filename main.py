import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Body, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from inventory import check_availability
from line_items import as_document_id
from logging_config import get_logger, setup_logging
from orders import list_orders, place_order
from schemas import OrderResult

setup_logging()
log = get_logger(__name__)

# App setup
app = FastAPI(title="Sportswear Storefront API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security/JWT setup
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))
security = HTTPBearer(auto_error=False)


def create_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "exp": now + timedelta(minutes=JWT_EXPIRES_MIN),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def get_current_user_id(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[str]:
    """The caller's user id, or None when there is no valid bearer token."""
    if credentials is None:
        return None
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        log.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError:
        log.info("Rejected invalid token")
        return None
    return payload.get("sub")


def get_db() -> Optional[Database]:
    return database.db


def _failure(message: str) -> Dict[str, Any]:
    return OrderResult(success=False, message=message).to_response()


# Health
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database(db: Optional[Database] = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Orders
@app.post("/api/order/create")
def create_order(payload: Any = Body(None), user_id: Optional[str] = Depends(get_current_user_id),
                 db: Optional[Database] = Depends(get_db)):
    if db is None:
        return _failure("Database not configured")
    return place_order(db, user_id, payload).to_response()


@app.get("/api/order/list")
def order_list(user_id: Optional[str] = Depends(get_current_user_id), db: Optional[Database] = Depends(get_db)):
    if not user_id:
        return _failure("Authentication failed - no user ID found")
    if db is None:
        return _failure("Database not configured")
    try:
        orders = list_orders(db, user_id)
    except PyMongoError as e:
        log.error(f"[User: {user_id}] Order list failed: {e}")
        return _failure(str(e))
    return {"success": True, "orders": orders}


# Products
@app.get("/api/product/{product_id}/availability")
def product_availability(product_id: str, color: Optional[str] = None, size: Optional[str] = None,
                         quantity: int = Query(1, ge=1), db: Optional[Database] = Depends(get_db)):
    if db is None:
        return {"success": False, "message": "Database not configured"}
    try:
        product = db["product"].find_one({"_id": as_document_id(product_id)})
    except PyMongoError as e:
        log.error(f"Availability lookup for {product_id} failed: {e}")
        return {"success": False, "message": str(e)}
    if product is None:
        return {"success": False, "message": f"Product not found: {product_id}"}
    return {"success": True, **check_availability(product, color, size, quantity)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
