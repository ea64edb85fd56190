"""
FastAPI Application Package

This package contains the main FastAPI application and routing logic.
It serves as the entry point for the backend API, exposing REST endpoints for
quotes, historical series, asset details and market trends.
"""
