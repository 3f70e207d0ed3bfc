from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from core.elicitation import ElicitAction, ElicitationChannel, ElicitRequest
from core.registry import Tool
from core.results import ToolResult
from core.schema import FieldSpec, Schema, ValidationError, validate

logger = logging.getLogger(__name__)

TOPPINGS: Dict[str, List[str]] = {
    "vanilla": ["caramel sauce", "rainbow sprinkles", "crushed cookies"],
    "strawberry": ["white chocolate chips", "fresh berries", "whipped cream"],
    "chocolate": ["chopped nuts", "marshmallows", "hot fudge"],
}

FLAVOUR_PROMPT = "Which ice cream flavour do you want toppings for? (vanilla, strawberry, or chocolate)"


class IceCreamToppingRecommenderTool(Tool):
    """Recommends toppings for a flavour, asking the user when none is given."""

    name = "ice_cream_topping_recommender"
    description = "Recommends the best ice cream toppings based on your selected flavour."
    input_schema = Schema.of(
        flavour=FieldSpec(
            type="string",
            enum=tuple(TOPPINGS),
            description="Choose a flavour: vanilla, strawberry, or chocolate.",
            required=True,
        )
    )

    async def execute(
        self, arguments: Mapping[str, Any], elicitation: Optional[ElicitationChannel] = None
    ) -> ToolResult:
        flavour = (arguments or {}).get("flavour")

        if flavour in (None, ""):
            if elicitation is None:
                return ToolResult.error("❌ No flavour provided and this client cannot be asked for one.")
            return await self._elicit_flavour(elicitation)

        try:
            flavour = validate({"flavour": flavour}, self.input_schema)["flavour"]
        except ValidationError as e:
            return ToolResult.error(f"❌ Invalid flavour {flavour!r}: {e}")
        return self.recommend(flavour)

    async def _elicit_flavour(self, elicitation: ElicitationChannel) -> ToolResult:
        # One round-trip only; anything but a valid accept ends the invocation.
        result = await elicitation.elicit(
            ElicitRequest(FLAVOUR_PROMPT, self.input_schema.restrict(["flavour"]))
        )
        if result.action is ElicitAction.DECLINE:
            return ToolResult.error("❌ No flavour selected: you declined to choose one.")
        if result.action is ElicitAction.CANCEL:
            return ToolResult.error("❌ Cancelled by user.")
        try:
            content = validate(result.content or {}, self.input_schema)
        except ValidationError as e:
            logger.info("Elicited flavour rejected: %s", e)
            return ToolResult.error(f"❌ No valid flavour selected: {e}")
        return self.recommend(content["flavour"])

    @staticmethod
    def recommend(flavour: str) -> ToolResult:
        toppings = TOPPINGS.get(flavour)
        if toppings is None:
            return ToolResult.error(f"❌ Unknown flavour: {flavour}.")
        return ToolResult.text(
            f"🍦 For {flavour} ice cream, the best toppings are: {', '.join(toppings)}."
        )
