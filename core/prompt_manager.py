"""Prompt and recipe repository for Splitbench."""

import difflib
import logging
from typing import Optional, Union

from sqlmodel import select

from .database import get_session
from .errors import InvalidRecipe
from .models import Prompt, Recipe, RecipeSnapshot, utcnow

logger = logging.getLogger(__name__)

RecipeLike = Union[Recipe, RecipeSnapshot]


class PromptManager:
    """Manages prompt and recipe CRUD operations and recipe resolution."""

    # -- prompts ---------------------------------------------------------

    def create_prompt(
        self,
        title: str,
        content: str,
        example_messages: Optional[list[str]] = None,
    ) -> Prompt:
        """Create a new prompt."""
        prompt = Prompt(
            title=title,
            content=content,
            example_messages=list(example_messages or []),
        )
        with get_session() as db:
            db.add(prompt)
            db.commit()
            db.refresh(prompt)
            db.expunge(prompt)
        return prompt

    def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
        """Get a prompt by ID."""
        with get_session() as db:
            result = db.exec(select(Prompt).where(Prompt.id == prompt_id)).first()
            if result:
                db.expunge(result)
            return result

    def list_prompts(self) -> list[Prompt]:
        """List all prompts ordered by creation time."""
        with get_session() as db:
            results = db.exec(select(Prompt).order_by(Prompt.created_at)).all()
            for r in results:
                db.expunge(r)
            return list(results)

    def update_prompt(self, prompt_id: str, **kwargs) -> Optional[Prompt]:
        """Update prompt fields. Returns the updated Prompt or None if not found."""
        with get_session() as db:
            prompt = db.exec(select(Prompt).where(Prompt.id == prompt_id)).first()
            if not prompt:
                return None

            for key, value in kwargs.items():
                if key in ("id", "created_at"):
                    continue
                if hasattr(prompt, key):
                    setattr(prompt, key, value)

            prompt.updated_at = utcnow()
            db.add(prompt)
            db.commit()
            db.refresh(prompt)
            db.expunge(prompt)
            return prompt

    def add_example_message(self, prompt_id: str, content: str) -> Optional[Prompt]:
        """Append an example user message to a prompt."""
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            return None
        return self.update_prompt(prompt_id, example_messages=[*prompt.example_messages, content])

    def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a prompt and drop it from every recipe that references it."""
        with get_session() as db:
            prompt = db.exec(select(Prompt).where(Prompt.id == prompt_id)).first()
            if not prompt:
                return False

            for recipe in db.exec(select(Recipe)).all():
                if prompt_id in recipe.prompt_ids:
                    recipe.prompt_ids = [pid for pid in recipe.prompt_ids if pid != prompt_id]
                    recipe.updated_at = utcnow()
                    db.add(recipe)

            db.delete(prompt)
            db.commit()
            return True

    # -- recipes ---------------------------------------------------------

    def create_recipe(
        self,
        title: str,
        prompt_ids: list[str],
        description: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        frequency_penalty: Optional[float] = None,
        presence_penalty: Optional[float] = None,
        stop_sequences: Optional[list[str]] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> Recipe:
        """Create a new recipe from an ordered list of prompt ids."""
        recipe = Recipe(
            title=title,
            description=description,
            prompt_ids=list(prompt_ids),
            model=model,
            temperature=temperature,
            frequency_penalty=frequency_penalty,
            presence_penalty=presence_penalty,
            stop_sequences=stop_sequences,
            max_tokens=max_tokens,
            top_p=top_p,
        )
        with get_session() as db:
            db.add(recipe)
            db.commit()
            db.refresh(recipe)
            db.expunge(recipe)
        return recipe

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        """Get a recipe by ID."""
        with get_session() as db:
            result = db.exec(select(Recipe).where(Recipe.id == recipe_id)).first()
            if result:
                db.expunge(result)
            return result

    def list_recipes(self) -> list[Recipe]:
        """List all recipes ordered by creation time."""
        with get_session() as db:
            results = db.exec(select(Recipe).order_by(Recipe.created_at)).all()
            for r in results:
                db.expunge(r)
            return list(results)

    def update_recipe(self, recipe_id: str, **kwargs) -> Optional[Recipe]:
        """Update recipe fields. Returns the updated Recipe or None if not found."""
        with get_session() as db:
            recipe = db.exec(select(Recipe).where(Recipe.id == recipe_id)).first()
            if not recipe:
                return None

            for key, value in kwargs.items():
                if key in ("id", "created_at"):
                    continue
                if hasattr(recipe, key):
                    setattr(recipe, key, list(value) if key == "prompt_ids" else value)

            recipe.updated_at = utcnow()
            db.add(recipe)
            db.commit()
            db.refresh(recipe)
            db.expunge(recipe)
            return recipe

    def remove_prompt_from_recipe(self, recipe_id: str, prompt_id: str) -> Optional[Recipe]:
        recipe = self.get_recipe(recipe_id)
        if not recipe:
            return None
        return self.update_recipe(
            recipe_id,
            prompt_ids=[pid for pid in recipe.prompt_ids if pid != prompt_id],
        )

    def reorder_prompts(self, recipe_id: str, new_order: list[str]) -> Optional[Recipe]:
        """Reorder a recipe's prompts. The new order must hold the same ids."""
        recipe = self.get_recipe(recipe_id)
        if not recipe:
            return None
        if sorted(new_order) != sorted(recipe.prompt_ids):
            raise ValueError("New order must contain exactly the recipe's prompt ids")
        return self.update_recipe(recipe_id, prompt_ids=new_order)

    def delete_recipe(self, recipe_id: str) -> bool:
        """Delete a recipe by ID."""
        with get_session() as db:
            recipe = db.exec(select(Recipe).where(Recipe.id == recipe_id)).first()
            if not recipe:
                return False
            db.delete(recipe)
            db.commit()
            return True

    # -- resolution ------------------------------------------------------

    def resolve_recipe_prompts(self, recipe: RecipeLike) -> list[Prompt]:
        """
        Resolve a recipe's prompt ids to prompts, in recipe order.

        Ids that no longer point at a prompt are dropped with a warning;
        the recipe stays usable as long as one prompt resolves.
        """
        if not recipe.prompt_ids:
            return []

        with get_session() as db:
            rows = db.exec(select(Prompt).where(Prompt.id.in_(recipe.prompt_ids))).all()
            for r in rows:
                db.expunge(r)

        by_id = {p.id: p for p in rows}
        missing = [pid for pid in recipe.prompt_ids if pid not in by_id]
        if missing:
            logger.warning(
                "Recipe '%s' references %d missing prompt(s): %s",
                recipe.title,
                len(missing),
                ", ".join(missing),
            )
        return [by_id[pid] for pid in recipe.prompt_ids if pid in by_id]

    def snapshot_recipe(self, recipe: RecipeLike) -> RecipeSnapshot:
        """Freeze a recipe with its current prompt texts. Raises InvalidRecipe if none resolve."""
        prompts = self.resolve_recipe_prompts(recipe)
        if not prompts:
            raise InvalidRecipe(recipe.title)
        return RecipeSnapshot.capture(recipe, prompts)

    def get_system_prompt(self, recipe: RecipeLike) -> str:
        """Effective system prompt of a recipe, or '' when nothing resolves."""
        return build_system_prompt(self.resolve_recipe_prompts(recipe))


def build_system_prompt(prompts: list) -> str:
    """Join prompts as ``title: content`` blocks separated by blank lines."""
    return "\n\n".join(f"{p.title}: {p.content}" for p in prompts)


def generate_diff(old_prompt: str, new_prompt: str) -> list[dict]:
    """Generate a structured line diff for UI display."""
    differ = difflib.unified_diff(
        old_prompt.splitlines(keepends=True),
        new_prompt.splitlines(keepends=True),
        lineterm="",
    )

    result = []
    for line in differ:
        if line.startswith("+++") or line.startswith("---"):
            continue  # Skip file headers
        if line.startswith("@@"):
            continue  # Skip hunk headers
        if line.startswith("+"):
            result.append({"type": "added", "text": line[1:].rstrip("\n")})
        elif line.startswith("-"):
            result.append({"type": "removed", "text": line[1:].rstrip("\n")})
        elif line.startswith(" "):
            result.append({"type": "unchanged", "text": line[1:].rstrip("\n")})
        elif line.strip():
            result.append({"type": "unchanged", "text": line.rstrip("\n")})

    return result
