"""
Production / Manufacturing models: Recipe, RecipeIngredient, RecipeOutput, Production,
ProductionIngredient, ProductionOutput.
A recipe lists ingredient and output quantities for one batch. A production run
expands a recipe by batch_count into planned/actual lines; confirming it consumes
ingredients from stock and books outputs at the rolled-up ingredient cost.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.transaction import DocumentStatus


class Recipe(Base):
    """Reusable template: ingredient quantities -> output quantities per one batch."""

    __tablename__ = "recipes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(20), unique=True, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.id",
    )
    outputs = relationship(
        "RecipeOutput",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeOutput.id",
    )


class RecipeIngredient(Base):
    """Units of a product consumed per one batch of the recipe."""

    __tablename__ = "recipe_ingredients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Numeric(15, 4), nullable=False)

    recipe = relationship("Recipe", back_populates="ingredients")
    product = relationship("Product")


class RecipeOutput(Base):
    """Units of a product produced per one batch of the recipe."""

    __tablename__ = "recipe_outputs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Numeric(15, 4), nullable=False)

    recipe = relationship("Recipe", back_populates="outputs")
    product = relationship("Product")


class Production(Base):
    """
    One production run. Status: draft (no stock moved, editable) -> confirmed
    (ingredients consumed, outputs stocked) -> cancelled (stock movements reversed).
    """

    __tablename__ = "productions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(String(20), unique=True, nullable=False)  # e.g. PRD-26-0001
    date = Column(Date, nullable=False)
    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    output_warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False)
    batch_count = Column(Numeric(10, 4), nullable=False, default=1)
    notes = Column(Text, nullable=True)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.draft, server_default="draft")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    recipe = relationship("Recipe")
    user = relationship("User")
    output_warehouse = relationship("Warehouse")
    ingredients = relationship(
        "ProductionIngredient",
        back_populates="production",
        cascade="all, delete-orphan",
        order_by="ProductionIngredient.id",
    )
    outputs = relationship(
        "ProductionOutput",
        back_populates="production",
        cascade="all, delete-orphan",
        order_by="ProductionOutput.id",
    )

    @property
    def total_cost(self):
        return sum((o.cost or 0) * (o.actual_quantity or 0) for o in self.outputs)

    def __repr__(self):
        return f"<Production(number='{self.number}', status='{self.status}')>"


class ProductionIngredient(Base):
    """Ingredient actually drawn for a run, from its own source warehouse."""

    __tablename__ = "production_ingredients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    production_id = Column(Integer, ForeignKey("productions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False)
    planned_quantity = Column(Numeric(15, 4), nullable=False)  # recipe quantity * batch_count
    actual_quantity = Column(Numeric(15, 4), nullable=False)

    production = relationship("Production", back_populates="ingredients")
    product = relationship("Product")
    warehouse = relationship("Warehouse")


class ProductionOutput(Base):
    """Finished product of a run. cost is the per-unit cost fixed at confirm time."""

    __tablename__ = "production_outputs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    production_id = Column(Integer, ForeignKey("productions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    planned_quantity = Column(Numeric(15, 4), nullable=False)
    actual_quantity = Column(Numeric(15, 4), nullable=False)
    cost = Column(Numeric(15, 4), nullable=False, default=0)

    production = relationship("Production", back_populates="outputs")
    product = relationship("Product")
