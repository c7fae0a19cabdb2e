"""Handler modules for CRD resources.

Handlers register themselves via @kopf decorators when their module is
imported; ``secrets_broker.main`` imports them.
"""
