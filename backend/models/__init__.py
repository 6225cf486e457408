"""
Models

- models.domain: storage-agnostic dataclasses (users, cards, ledger, store, platform)
- models.api: pydantic request/response schemas for the HTTP layer
"""
