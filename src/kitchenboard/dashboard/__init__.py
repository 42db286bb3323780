"""Web dashboard for the kitchen board."""
