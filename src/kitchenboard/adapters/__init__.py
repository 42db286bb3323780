"""Clients for services the kitchen board talks to."""
