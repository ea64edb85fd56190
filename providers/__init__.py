"""
Market Data Providers Package

This package contains upstream market data provider connectors.
Each provider has its own subfolder with:
- api_client.py: REST API logic
- __init__.py: Provider class implementing ProviderInterface

The modular design allows adding providers without modifying the cache or routes.
"""
