"""
api/routes/v1/cars.py -- Dealer-scoped car inventory routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /cars                -- add a car to the caller's stock
  GET    /cars                -- list the caller's cars
  GET    /cars/search         -- caller's cars matching make + model
  GET    /cars/stock          -- stock level for make + model
  GET    /cars/{car_id}       -- one car, if owned by the caller
  DELETE /cars/{car_id}       -- remove a car, if owned by the caller

Scoping:
  The router-level require_identity dependency runs before any handler, so an
  unauthenticated request never reaches the car store. Every handler takes
  the Identity explicitly and passes identity.dealer_id into the store.
  Another dealer's car is reported exactly like a missing car (404).

Empty list/search results are reported as 404 rather than [].
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from api.models import CarCreate, CarResponse, MessageResponse, StockLevelResponse
from auth.dependencies import authorize_ownership, require_identity
from auth.models import Identity
from core.errors import ResourceNotFound, ValidationFailed
from inventory.models import Car
from inventory.store import CarStore

logger = logging.getLogger("dealerapi.inventory")

# All car routes require authentication.
router = APIRouter(dependencies=[Depends(require_identity)])


def _require_make_model(make: str, model: str) -> tuple[str, str]:
    make, model = make.strip(), model.strip()
    if not make or not model:
        raise ValidationFailed("Make and Model are required.")
    return make, model


# ---------------------------------------------------------------------------
# POST /cars
# ---------------------------------------------------------------------------


@router.post("/cars", response_model=CarResponse, status_code=201)
def add_car(
    request: Request,
    body: CarCreate,
    identity: Identity = Depends(require_identity),
) -> CarResponse:
    """Add a car to the authenticated dealer's stock."""
    cars: CarStore = request.app.state.car_store
    car = Car(
        make=body.make,
        model=body.model,
        year=body.year,
        number_plate=body.number_plate,
        dealer_id=identity.dealer_id,
    )
    car_id = cars.add_car(car)
    logger.info("Car %s added for dealer=%s", car_id, identity.dealer_id)
    return CarResponse.from_car(cars.get_car(car_id))


# ---------------------------------------------------------------------------
# GET /cars
# ---------------------------------------------------------------------------


@router.get("/cars", response_model=list[CarResponse])
def list_cars(request: Request, identity: Identity = Depends(require_identity)) -> list[CarResponse]:
    cars: CarStore = request.app.state.car_store
    rows = cars.list_cars(identity.dealer_id)
    if not rows:
        raise ResourceNotFound("No cars found.")
    return [CarResponse.from_car(c) for c in rows]


# ---------------------------------------------------------------------------
# GET /cars/search and /cars/stock (must be before /cars/{car_id})
# ---------------------------------------------------------------------------


@router.get("/cars/search", response_model=list[CarResponse])
def search_cars(
    request: Request,
    make: str = Query(max_length=100),
    model: str = Query(max_length=100),
    identity: Identity = Depends(require_identity),
) -> list[CarResponse]:
    """Exact make/model match within the caller's stock."""
    make, model = _require_make_model(make, model)
    cars: CarStore = request.app.state.car_store
    rows = cars.search_cars(identity.dealer_id, make, model)
    if not rows:
        raise ResourceNotFound(f"No cars found with Make {make} and Model {model}.")
    return [CarResponse.from_car(c) for c in rows]


@router.get("/cars/stock", response_model=StockLevelResponse)
def get_stock_levels(
    request: Request,
    make: str = Query(max_length=100),
    model: str = Query(max_length=100),
    identity: Identity = Depends(require_identity),
) -> StockLevelResponse:
    """Stock level for one make/model pair. Zero matches is a 200 with stock_level 0."""
    make, model = _require_make_model(make, model)
    cars: CarStore = request.app.state.car_store
    return StockLevelResponse.from_stock(cars.get_stock_levels(identity.dealer_id, make, model))


# ---------------------------------------------------------------------------
# GET / DELETE /cars/{car_id}
# ---------------------------------------------------------------------------


@router.get("/cars/{car_id}", response_model=CarResponse)
def get_car(request: Request, car_id: int, identity: Identity = Depends(require_identity)) -> CarResponse:
    cars: CarStore = request.app.state.car_store
    car = cars.get_car(car_id)
    authorize_ownership(identity.dealer_id, car.dealer_id if car else None)
    return CarResponse.from_car(car)


@router.delete("/cars/{car_id}", response_model=MessageResponse)
def remove_car(request: Request, car_id: int, identity: Identity = Depends(require_identity)) -> MessageResponse:
    """Remove a car. Ownership is checked first, then the delete itself is dealer-scoped."""
    cars: CarStore = request.app.state.car_store
    car = cars.get_car(car_id)
    authorize_ownership(identity.dealer_id, car.dealer_id if car else None)
    if not cars.remove_car(car_id, identity.dealer_id):
        raise ResourceNotFound()
    logger.info("Car %s removed for dealer=%s", car_id, identity.dealer_id)
    return MessageResponse(message=f"Car with ID {car_id} successfully removed.")
