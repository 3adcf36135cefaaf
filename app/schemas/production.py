"""
Pydantic schemas for Recipe calculation and Production APIs.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.transaction import DocumentStatus


# ============================================================================
# Recipe calculation
# ============================================================================


class PlannedLine(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    planned_quantity: Decimal


class RecipeCalculationResponse(BaseModel):
    """Recipe x batch_count, nothing persisted."""

    recipe_id: int
    recipe_name: str
    batch_count: Decimal
    ingredients: List[PlannedLine]
    outputs: List[PlannedLine]


# ============================================================================
# Production requests
# ============================================================================


class ProductionIngredientCreate(BaseModel):
    product_id: int
    warehouse_id: int
    planned_quantity: Decimal = Field(..., ge=0)
    actual_quantity: Optional[Decimal] = Field(None, ge=0, description="Defaults to planned_quantity")


class ProductionOutputCreate(BaseModel):
    product_id: int
    planned_quantity: Decimal = Field(..., ge=0)
    actual_quantity: Optional[Decimal] = Field(None, ge=0, description="Defaults to planned_quantity")


class ProductionCreate(BaseModel):
    """
    Create a draft run. When ingredients/outputs are omitted the recipe is expanded
    by batch_count, drawing every ingredient from ingredient_warehouse_id
    (or the output warehouse when that is not given).
    """

    recipe_id: int
    user_id: int = Field(..., description="Creator of the document")
    output_warehouse_id: int
    ingredient_warehouse_id: Optional[int] = None
    batch_count: Decimal = Field(Decimal("1"), gt=0)
    date: Optional[date_type] = None
    notes: Optional[str] = None
    ingredients: Optional[List[ProductionIngredientCreate]] = None
    outputs: Optional[List[ProductionOutputCreate]] = None


class ProductionUpdate(BaseModel):
    """Edit a draft run. Omitted fields are unchanged; given line lists replace the old ones."""

    date: Optional[date_type] = None
    output_warehouse_id: Optional[int] = None
    batch_count: Optional[Decimal] = Field(None, gt=0)
    notes: Optional[str] = None
    ingredients: Optional[List[ProductionIngredientCreate]] = None
    outputs: Optional[List[ProductionOutputCreate]] = None

    @field_validator("ingredients", "outputs")
    @classmethod
    def lines_not_empty(cls, v):
        if v is not None and len(v) == 0:
            raise ValueError("a production needs at least one line; omit the field to keep the current lines")
        return v


# ============================================================================
# Responses
# ============================================================================


class ProductionIngredientResponse(BaseModel):
    id: int
    product_id: int
    warehouse_id: int
    planned_quantity: Decimal
    actual_quantity: Decimal

    class Config:
        from_attributes = True


class ProductionOutputResponse(BaseModel):
    id: int
    product_id: int
    planned_quantity: Decimal
    actual_quantity: Decimal
    cost: Decimal = Field(..., description="Per-unit cost fixed at confirm time")

    class Config:
        from_attributes = True


class ProductionSummary(BaseModel):
    id: int
    number: str
    date: date_type
    recipe_id: int
    user_id: int
    output_warehouse_id: int
    batch_count: Decimal
    status: DocumentStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductionResponse(ProductionSummary):
    total_cost: Decimal
    ingredients: List[ProductionIngredientResponse] = []
    outputs: List[ProductionOutputResponse] = []


class ProductionListResponse(BaseModel):
    total: int
    productions: List[ProductionSummary]


class FeasibilityLine(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    warehouse_id: int
    required_quantity: Decimal
    available_quantity: Decimal
    shortfall: Decimal
    sufficient: bool


class ProductionFeasibilityResponse(BaseModel):
    production_id: int
    feasible: bool
    ingredients: List[FeasibilityLine]


class ProductionDeleteResponse(BaseModel):
    message: str
