"""
Provider-neutral models for talking to large language models.

Concrete vendor adapters live outside this package; they implement
``agentloop.interfaces.ModelProviderProtocol`` using these models.
"""
