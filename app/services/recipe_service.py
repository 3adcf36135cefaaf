"""
Recipe service: lookup and batch expansion.
Recipe CRUD is reference data managed elsewhere; production only reads recipes.
"""

from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session, joinedload

from app.common.exceptions import NotFound
from app.logger_config import logger
from app.models.recipe import Recipe, RecipeIngredient, RecipeOutput
from app.utils.rounding import to_decimal


PLANNED_PLACES = Decimal("0.0001")


def get_recipe(db: Session, recipe_id: int) -> Recipe:
    """Recipe with ingredient and output lines (and their products) loaded."""
    recipe = (
        db.query(Recipe)
        .options(
            joinedload(Recipe.ingredients).joinedload(RecipeIngredient.product),
            joinedload(Recipe.outputs).joinedload(RecipeOutput.product),
        )
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if not recipe:
        raise NotFound(f"Recipe not found: {recipe_id}")
    return recipe


def _scale(quantity, batch_count) -> Decimal:
    return (to_decimal(quantity) * to_decimal(batch_count)).quantize(PLANNED_PLACES)


def calculate(recipe: Recipe, batch_count=1) -> Dict[str, Any]:
    """
    Planned ingredient and output quantities for recipe x batch_count.
    Nothing is persisted; suitable for a preview before a production is created.
    """
    if to_decimal(batch_count) <= 0:
        raise ValueError("batch_count must be positive")

    return {
        "recipe_id": recipe.id,
        "recipe_name": recipe.name,
        "batch_count": to_decimal(batch_count),
        "ingredients": [
            {
                "product_id": line.product_id,
                "product_name": line.product.name if line.product else None,
                "planned_quantity": _scale(line.quantity, batch_count),
            }
            for line in recipe.ingredients
        ],
        "outputs": [
            {
                "product_id": line.product_id,
                "product_name": line.product.name if line.product else None,
                "planned_quantity": _scale(line.quantity, batch_count),
            }
            for line in recipe.outputs
        ],
    }


def expand_recipe(
    recipe: Recipe,
    batch_count,
    ingredient_warehouse_id: int,
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Production lines for recipe x batch_count: every ingredient drawn from
    ingredient_warehouse_id, planned == actual quantity, outputs at zero cost.
    """
    planned = calculate(recipe, batch_count)

    ingredients = [
        {
            "product_id": line["product_id"],
            "warehouse_id": ingredient_warehouse_id,
            "planned_quantity": line["planned_quantity"],
            "actual_quantity": line["planned_quantity"],
        }
        for line in planned["ingredients"]
    ]
    outputs = [
        {
            "product_id": line["product_id"],
            "planned_quantity": line["planned_quantity"],
            "actual_quantity": line["planned_quantity"],
        }
        for line in planned["outputs"]
    ]

    logger.debug(
        f"Recipe {recipe.id} expanded x{batch_count}: "
        f"{len(ingredients)} ingredient(s), {len(outputs)} output(s)"
    )
    return ingredients, outputs
