"""API key validation for staff endpoints.

Each staff API key is bound to the restaurants its holder may manage.
Validation uses simple lookups against the configured key map.
"""

from dataclasses import dataclass

ALL_RESTAURANTS = "*"


@dataclass(frozen=True)
class StaffActor:
    """Authenticated staff member issuing order requests.

    Attributes:
        actor_id: Stable identifier for logging (never the raw key)
        restaurant_ids: Restaurants this actor may manage, or ``*`` for all
    """

    actor_id: str
    restaurant_ids: frozenset[str]

    def can_manage(self, restaurant_id: str) -> bool:
        """Check whether the actor has authority over a restaurant."""
        return ALL_RESTAURANTS in self.restaurant_ids or restaurant_id in self.restaurant_ids


class StaffKeyValidator:
    """Validates staff API keys and resolves them to actors."""

    def __init__(self, staff_api_keys: dict[str, list[str]]) -> None:
        """Initialize validator with the key to restaurant mapping.

        Args:
            staff_api_keys: Mapping of API key to the restaurant ids it grants

        Raises:
            ValueError: If no keys are configured
        """
        if not staff_api_keys:
            raise ValueError("At least one staff API key must be provided")

        self.actors = {
            key: StaffActor(actor_id=f"staff_{index}", restaurant_ids=frozenset(restaurants))
            for index, (key, restaurants) in enumerate(staff_api_keys.items(), start=1)
        }

    def resolve(self, api_key: str) -> StaffActor | None:
        """Resolve an API key to its actor, or None if the key is unknown."""
        return self.actors.get(api_key)
