"""
auth — platform bearer-token verification.

Provides:
  • signed token creation & verification
  • ``get_current_user_id`` FastAPI dependency
"""
