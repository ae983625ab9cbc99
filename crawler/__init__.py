"""
Plate availability crawler.

Control flow for one PlateQuery:
    StationOrchestrator → StationFormNavigator → CaptchaRetryLoop
    → ResultPaginator → StagingPublisher

SyncStats observes every stage; the RateLimiter gates every CaptchaSolver call.
"""

__all__ = [
    "StationOrchestrator",
    "StationFormNavigator",
    "CaptchaRetryLoop",
    "ResultPaginator",
    "StagingPublisher",
    "SwapFinalizer",
    "RateLimiter",
    "SyncStats",
    "PlateStore",
]
