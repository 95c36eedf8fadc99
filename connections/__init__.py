"""
connections — link a platform user to an external account over OAuth2.

Provides a polymorphic connection framework that handles:
  • authorization-URL generation with single-use CSRF state tokens
  • code → token exchange and identity fetch per provider
  • idempotent creation of connected-account records
  • "connections updated" notifications with tokens stripped

Each provider (Battle.net, Xbox, …) is a subclass of BaseConnection.
"""
