"""
Services Layer

Bracket business logic that:
- Accepts domain inputs (IDs, sessions, drafts)
- Returns domain outputs (models, schemas)
- Does NOT depend on HTTP request/response objects (except the API client)
"""
