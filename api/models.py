"""
API request and response models for the Dealer Stock REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
inventory/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.tokens import password_too_long
from inventory.models import Car, StockLevel

# ---------------------------------------------------------------------------
# Dealers / auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/dealers/login."""

    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("password")
    @classmethod
    def password_within_bcrypt_limit(cls, v: str) -> str:
        # max_length counts characters; bcrypt's limit is 72 bytes.
        if password_too_long(v):
            raise ValueError("password must be at most 72 bytes")
        return v


class LoginResponse(BaseModel):
    """Response for a successful login.

    access_token is the same signed assertion written to the cookie, for
    clients that prefer Authorization: Bearer.
    """

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    dealer_id: int
    name: str
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class CurrentDealerResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    dealer_id: int
    name: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Cars
# ---------------------------------------------------------------------------


class CarCreate(BaseModel):
    """Request body for POST /api/v1/cars.

    Unknown fields (including any dealer_id a client sends) are ignored; the
    owner is always the authenticated dealer.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1886, le=2100)
    number_plate: str = Field(min_length=1, max_length=20)


class CarResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    make: str
    model: str
    year: int
    number_plate: str
    dealer_id: int

    @classmethod
    def from_car(cls, car: Car) -> "CarResponse":
        return cls(
            id=car.id,
            make=car.make,
            model=car.model,
            year=car.year,
            number_plate=car.number_plate,
            dealer_id=car.dealer_id,
        )


class StockLevelResponse(BaseModel):
    """Response for GET /api/v1/cars/stock. stock_level is 0 when nothing matches."""

    model_config = ConfigDict(frozen=True)

    make: str
    model: str
    stock_level: int

    @classmethod
    def from_stock(cls, stock: StockLevel) -> "StockLevelResponse":
        return cls(make=stock.make, model=stock.model, stock_level=stock.stock_level)


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
