"""
Core Package

Contains the provider-agnostic core of the API:
- ProviderInterface: Abstract base class defining the contract for market data providers
- Schemas: Pydantic models for the normalized records the API returns
- Errors / FetchResult: Domain error kinds and explicit success/failure outcomes
- Config / Logging: Application settings and logging setup

Providers plug in behind ProviderInterface, so the caching and HTTP layers never
depend on a specific upstream service.
"""
