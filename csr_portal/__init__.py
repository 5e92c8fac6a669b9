"""Application package for the CSR partner portal backend.

This package exposes the service, repository and model modules used by
the FastAPI application. Pure view calculations (filters, metrics,
budgets, reports, timelines, calendar, branding) live in `utils`.
"""
