"""
Production service: recipe-driven manufacturing runs.

A run is created as a draft from a recipe x batch_count (or explicit lines).
Confirm consumes every ingredient from its warehouse at the current average cost,
rolls the total up into a per-unit cost for the outputs and books them into the
output warehouse at that cost. Cancel puts ingredients back and takes outputs out.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from app.common.exceptions import InvalidState, NotFound
from app.core.database import unit_of_work
from app.logger_config import logger
from app.models.recipe import Production, ProductionIngredient, ProductionOutput, Recipe
from app.models.transaction import DocumentStatus
from app.services.ledger_service import StockLedger
from app.services.numbering import next_document_number
from app.services.recipe_service import expand_recipe, get_recipe
from app.utils.rounding import to_decimal, unit_cost


PRODUCTION_PREFIX = "PRD"


def _ingredient_rows(lines: List[Dict[str, Any]]) -> List[ProductionIngredient]:
    return [
        ProductionIngredient(
            product_id=line["product_id"],
            warehouse_id=line["warehouse_id"],
            planned_quantity=to_decimal(line["planned_quantity"]),
            actual_quantity=to_decimal(
                line["actual_quantity"] if line.get("actual_quantity") is not None else line["planned_quantity"]
            ),
        )
        for line in lines
    ]


def _output_rows(lines: List[Dict[str, Any]]) -> List[ProductionOutput]:
    return [
        ProductionOutput(
            product_id=line["product_id"],
            planned_quantity=to_decimal(line["planned_quantity"]),
            actual_quantity=to_decimal(
                line["actual_quantity"] if line.get("actual_quantity") is not None else line["planned_quantity"]
            ),
            cost=Decimal("0"),
        )
        for line in lines
    ]


class ProductionService:
    def __init__(self, db: Session):
        self.db = db
        self.stock = StockLedger(db)

    # ==================== QUERIES ====================

    def get(self, production_id: int) -> Production:
        """Production with recipe, ingredient and output lines loaded; NotFound when missing."""
        production = (
            self.db.query(Production)
            .options(
                joinedload(Production.recipe),
                selectinload(Production.ingredients).joinedload(ProductionIngredient.product),
                selectinload(Production.outputs).joinedload(ProductionOutput.product),
            )
            .filter(Production.id == production_id)
            .first()
        )
        if not production:
            raise NotFound(f"Production not found: {production_id}")
        return production

    def list(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[DocumentStatus] = None,
        recipe_id: Optional[int] = None,
        user_id: Optional[int] = None,
        date_from: Optional[date_type] = None,
        date_to: Optional[date_type] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Production], int]:
        """List productions with optional filters. Returns (items, total_count)."""
        query = self.db.query(Production).options(joinedload(Production.recipe))

        if status:
            query = query.filter(Production.status == status)
        if recipe_id:
            query = query.filter(Production.recipe_id == recipe_id)
        if user_id:
            query = query.filter(Production.user_id == user_id)
        if date_from:
            query = query.filter(Production.date >= date_from)
        if date_to:
            query = query.filter(Production.date <= date_to)
        if search:
            term = f"%{search}%"
            query = query.join(Production.recipe).filter(
                or_(Production.number.ilike(term), Recipe.name.ilike(term))
            )

        total = query.count()
        rows = query.order_by(Production.date.desc(), Production.id.desc()).offset(skip).limit(limit).all()
        return rows, total

    def feasibility(self, production: Production) -> Dict[str, Any]:
        """
        Compare each ingredient's actual quantity against the stock on hand in its
        warehouse. Read-only; the same check confirm enforces.
        """
        lines = []
        for ingredient in production.ingredients:
            balance = self.stock.get(warehouse_id=ingredient.warehouse_id, product_id=ingredient.product_id)
            available = to_decimal(balance.quantity) if balance else Decimal("0")
            required = to_decimal(ingredient.actual_quantity)
            lines.append({
                "product_id": ingredient.product_id,
                "product_name": ingredient.product.name if ingredient.product else None,
                "warehouse_id": ingredient.warehouse_id,
                "required_quantity": required,
                "available_quantity": available,
                "shortfall": max(required - available, Decimal("0")),
                "sufficient": available >= required,
            })

        feasible = all(line["sufficient"] for line in lines)
        return {
            "production_id": production.id,
            "feasible": feasible,
            "ingredients": lines,
        }

    # ==================== LIFECYCLE ====================

    def create(self, data: Dict[str, Any]) -> Production:
        """
        Create a draft run. Explicit ingredient/output lines are used verbatim;
        otherwise the recipe is expanded by batch_count.
        """
        recipe = get_recipe(self.db, data["recipe_id"])
        batch_count = to_decimal(data.get("batch_count") or 1)
        doc_date = data.get("date") or date_type.today()

        with unit_of_work(self.db):
            production = Production(
                number=next_document_number(self.db, Production, PRODUCTION_PREFIX, doc_date),
                date=doc_date,
                recipe_id=recipe.id,
                user_id=data["user_id"],
                output_warehouse_id=data["output_warehouse_id"],
                batch_count=batch_count,
                notes=data.get("notes"),
                status=DocumentStatus.draft,
            )
            self._attach_lines(production, recipe, batch_count, data)
            self.db.add(production)
            self.db.flush()

        logger.info(
            f"Production created: {production.number}, recipe {recipe.id}, batches={batch_count}"
        )
        return self.get(production.id)

    def update(self, production: Production, data: Dict[str, Any]) -> Production:
        """
        Edit a draft run. Header fields are replaced when given; ingredient and
        output lines are replaced wholesale when given.
        """
        with unit_of_work(self.db):
            production = self._lock(production)
            if production.status != DocumentStatus.draft:
                raise InvalidState("only a draft production can be edited")

            for field in ("date", "recipe_id", "output_warehouse_id", "batch_count", "notes"):
                if data.get(field) is not None:
                    setattr(production, field, to_decimal(data[field]) if field == "batch_count" else data[field])

            if data.get("ingredients") is not None:
                production.ingredients.clear()
                self.db.flush()
                production.ingredients.extend(_ingredient_rows(data["ingredients"]))

            if data.get("outputs") is not None:
                production.outputs.clear()
                self.db.flush()
                production.outputs.extend(_output_rows(data["outputs"]))

            self.db.flush()

        logger.info(f"Production updated: {production.number}")
        return self.get(production.id)

    def confirm(self, production: Production) -> Production:
        """
        Consume ingredients, roll their cost into outputs, stock the outputs.
        Any ingredient short on stock aborts the whole run with InsufficientStock.
        """
        with unit_of_work(self.db):
            production = self._lock(production)
            if production.status != DocumentStatus.draft:
                raise InvalidState("only a draft production can be confirmed")

            total_ingredient_cost = Decimal("0")
            for ingredient in production.ingredients:
                product_name = ingredient.product.name if ingredient.product else str(ingredient.product_id)
                total_ingredient_cost += self.stock.consume(
                    ingredient.warehouse_id,
                    ingredient.product_id,
                    ingredient.actual_quantity,
                    product_name,
                )

            total_output_quantity = sum((to_decimal(o.actual_quantity) for o in production.outputs), Decimal("0"))
            cost_per_unit = (
                unit_cost(total_ingredient_cost / total_output_quantity)
                if total_output_quantity > 0
                else Decimal("0")
            )

            for output in production.outputs:
                output.cost = cost_per_unit
                self.stock.receive_at_cost(
                    production.output_warehouse_id,
                    output.product_id,
                    output.actual_quantity,
                    cost_per_unit,
                )

            production.status = DocumentStatus.confirmed

        logger.info(
            f"Production confirmed: {production.number}, ingredient cost={total_ingredient_cost}, "
            f"cost per unit={cost_per_unit}"
        )
        return self.get(production.id)

    def cancel(self, production: Production) -> Production:
        """
        Return ingredients to their warehouses (at whatever avg_cost those rows now
        carry) and take outputs back out of the output warehouse.
        """
        with unit_of_work(self.db):
            production = self._lock(production)
            if production.status != DocumentStatus.confirmed:
                raise InvalidState("only a confirmed production can be cancelled")

            for ingredient in production.ingredients:
                self.stock.move(ingredient.warehouse_id, ingredient.product_id, ingredient.actual_quantity)

            for output in production.outputs:
                self.stock.remove(production.output_warehouse_id, output.product_id, output.actual_quantity)

            production.status = DocumentStatus.cancelled

        logger.info(f"Production cancelled: {production.number}")
        return self.get(production.id)

    def delete(self, production: Production) -> None:
        """Delete a draft run along with its lines."""
        with unit_of_work(self.db):
            production = self._lock(production)
            if production.status != DocumentStatus.draft:
                raise InvalidState("only a draft production can be deleted")
            number = production.number
            self.db.delete(production)

        logger.info(f"Production deleted: {number}")

    # ==================== HELPERS ====================

    def _lock(self, production: Production) -> Production:
        locked = (
            self.db.query(Production)
            .filter(Production.id == production.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if locked is None:
            raise NotFound(f"Production not found: {production.id}")
        return locked

    def _attach_lines(self, production: Production, recipe: Recipe, batch_count: Decimal, data: Dict[str, Any]) -> None:
        ingredient_warehouse_id = data.get("ingredient_warehouse_id") or data["output_warehouse_id"]
        recipe_ingredients, recipe_outputs = expand_recipe(recipe, batch_count, ingredient_warehouse_id)

        production.ingredients.extend(_ingredient_rows(data.get("ingredients") or recipe_ingredients))
        production.outputs.extend(_output_rows(data.get("outputs") or recipe_outputs))
