class BlockingComponent:
    """Marks an entity whose position other agents must not step onto."""


__all__ = ["BlockingComponent"]
