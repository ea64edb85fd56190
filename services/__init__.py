"""
Services Package

Business logic sitting between the HTTP layer and the market data provider:

- market_data.py: Cache-backed orchestrator for every data operation
- symbols.py: Fixed symbol sets (convenience endpoints, trends, ADRs)
"""
