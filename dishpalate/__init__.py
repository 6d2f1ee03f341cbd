"""
Backend package for the Dish Palate recipe-sharing API.

This package provides a FastAPI application over a document store
abstraction (MongoDB, SQL or in-memory), a small coin economy that gates
access to recipes, and per-recipe reactions.
"""
