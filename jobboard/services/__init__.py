# Job board services
from jobboard.services.accounts import AccountService
from jobboard.services.applications import ApplicationService
from jobboard.services.email import EmailDeliveryError, EmailSender, LoggingEmailSender
from jobboard.services.jobs import JobService
from jobboard.services.query_features import QueryFeatureBuilder, build_query
from jobboard.services.revocation import (
    ExternalRevocationStore,
    InMemoryRevocationStore,
    RevocationStore,
    create_revocation_store,
)
from jobboard.services.tokens import TokenLifecycleManager

__all__ = [
    "AccountService",
    "ApplicationService",
    "EmailDeliveryError",
    "EmailSender",
    "ExternalRevocationStore",
    "InMemoryRevocationStore",
    "JobService",
    "LoggingEmailSender",
    "QueryFeatureBuilder",
    "RevocationStore",
    "TokenLifecycleManager",
    "build_query",
    "create_revocation_store",
]
