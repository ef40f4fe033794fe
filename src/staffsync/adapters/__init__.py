"""Adapters connecting the domain to HTTP services and the database."""
