"""
auth — database authentication built on fastapi-users.

Provides:
  • ``DbAuthHandler`` — one endpoint dispatching login / signup / logout /
    password reset / WebAuthn by ``method``
  • Option models for each flow's callback and error strings
  • bcrypt password helper and the session-cookie JWT backend
"""
