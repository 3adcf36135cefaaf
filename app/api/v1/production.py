"""
Production API: recipe calculation, draft runs, feasibility check, confirm and cancel.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.models.transaction import DocumentStatus
from app.schemas.production import (
    ProductionCreate,
    ProductionDeleteResponse,
    ProductionFeasibilityResponse,
    ProductionListResponse,
    ProductionResponse,
    ProductionSummary,
    ProductionUpdate,
    RecipeCalculationResponse,
)
from app.services.production_service import ProductionService
from app.services.recipe_service import calculate, get_recipe

router = APIRouter()


@router.get("/calculate", response_model=RecipeCalculationResponse)
def calculate_recipe(
    recipe_id: int = Query(..., description="Recipe to expand"),
    batch_count: Decimal = Query(Decimal("1"), gt=0),
    db: Session = Depends(get_db),
):
    """Planned ingredient and output quantities for recipe x batch_count. Nothing is saved."""
    return RecipeCalculationResponse(**calculate(get_recipe(db, recipe_id), batch_count))


@router.get("", response_model=ProductionListResponse)
def list_productions(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[DocumentStatus] = Query(None),
    recipe_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Search by number or recipe name"),
    db: Session = Depends(get_db),
):
    productions, total = ProductionService(db).list(
        skip=skip,
        limit=limit,
        status=status,
        recipe_id=recipe_id,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return ProductionListResponse(
        total=total,
        productions=[ProductionSummary.model_validate(p) for p in productions],
    )


@router.post("", response_model=ProductionResponse, status_code=status.HTTP_201_CREATED)
def create_production(data: ProductionCreate, db: Session = Depends(get_db)):
    """Create a draft run. No stock moves until it is confirmed."""
    payload = data.model_dump()
    for key in ("ingredients", "outputs"):
        if payload[key] is None:
            payload.pop(key)
    production = ProductionService(db).create(payload)
    return ProductionResponse.model_validate(production)


@router.get("/{production_id}", response_model=ProductionResponse)
def get_production(production_id: int, db: Session = Depends(get_db)):
    return ProductionResponse.model_validate(ProductionService(db).get(production_id))


@router.put("/{production_id}", response_model=ProductionResponse)
def update_production(production_id: int, data: ProductionUpdate, db: Session = Depends(get_db)):
    """Edit a draft run; anything else is rejected with 409."""
    service = ProductionService(db)
    production = service.update(service.get(production_id), data.model_dump(exclude_unset=True))
    return ProductionResponse.model_validate(production)


@router.delete("/{production_id}", response_model=ProductionDeleteResponse)
def delete_production(production_id: int, db: Session = Depends(get_db)):
    service = ProductionService(db)
    production = service.get(production_id)
    number = production.number
    service.delete(production)
    return ProductionDeleteResponse(message=f"Production {number} deleted")


@router.get("/{production_id}/feasibility", response_model=ProductionFeasibilityResponse)
def production_feasibility(production_id: int, db: Session = Depends(get_db)):
    """Required vs. available stock for every ingredient of the run."""
    service = ProductionService(db)
    return ProductionFeasibilityResponse(**service.feasibility(service.get(production_id)))


@router.post("/{production_id}/confirm", response_model=ProductionResponse)
def confirm_production(production_id: int, db: Session = Depends(get_db)):
    """Consume ingredients and stock the outputs at the rolled-up cost."""
    service = ProductionService(db)
    return ProductionResponse.model_validate(service.confirm(service.get(production_id)))


@router.post("/{production_id}/cancel", response_model=ProductionResponse)
def cancel_production(production_id: int, db: Session = Depends(get_db)):
    service = ProductionService(db)
    return ProductionResponse.model_validate(service.cancel(service.get(production_id)))
