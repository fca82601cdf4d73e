"""Middleware layers for the message pipeline.

Each module holds one stage of ``Orchestrator.handle()``. See
``core/pipeline.py`` for the runner and ``app/bootstrap.py`` for the order.
"""

__all__ = [
    "BackgroundWriter",
    "CommandMiddleware",
    "ContextPackager",
    "DeduplicationMiddleware",
    "DeliveryMiddleware",
    "NormalizationMiddleware",
    "OfflineFallbackMiddleware",
    "PersistenceMiddleware",
    "ProviderResponderMiddleware",
    "ResearchMiddleware",
    "SafetyActions",
    "SafetyMiddleware",
    "SelfCheckMiddleware",
    "SkillMiddleware",
    "TransferPlanMiddleware",
]
