"""Business logic services.

Service functions are called by route handlers and own all database and
language-model work. Routes are transport-only and call exactly one service
function.
"""
