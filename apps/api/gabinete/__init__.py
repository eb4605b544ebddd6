"""Gabinete CRM API - constituent and demand tracking for a parliamentary office."""
