class EntityIdComponent:
    """Stores a host-defined string identifier for an ECS entity."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id

    def __repr__(self) -> str:
        return f"EntityIdComponent({self.entity_id!r})"
