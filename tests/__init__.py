"""
System model test suite.

Test organization:
- unit/: entities, validators, saga, locks and storage backends in isolation
- integration/: managers over real stores and the gRPC surface over a channel
"""
