"""Small helpers shared across Kitchenboard entry points."""
