"""API package for the router."""
