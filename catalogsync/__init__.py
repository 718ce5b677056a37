"""HiggsFlow catalog sync.

Keeps the customer-facing public catalog in step with the internal
product store and serves storefront queries over it.
"""

__version__ = "0.1.0"
