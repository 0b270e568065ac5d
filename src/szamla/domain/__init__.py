"""Domain layer: entities, amount calculation, status rules and services."""
