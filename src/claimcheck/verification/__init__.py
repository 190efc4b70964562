"""Ownership verification: challenges, DNS consensus, hash files, trust state and sweeps."""

from .consensus import ConsensusResult, DnsConsensusVerifier, ResolverVote, dnspython_txt_lookup
from .models import (
    ArchivedRegistration,
    ArchiveReason,
    Challenge,
    ChallengeStatus,
    ChallengeType,
    FailureReason,
    OwnershipGrant,
    ProofChannel,
    SweepResult,
    TrustStatus,
    VerificationOutcome,
    VerificationRecord,
    VerificationStatusReport,
)
from .repository import FetchResult, GitHubContentsFetcher, HashCheck, RepositoryHashVerifier
from .resolvers import ResolverPanel, validate_resolver_address
from .service import VerificationService
from .state import TrustStateMachine
from .sweep import VerificationSweep
from .tokens import generate_token, normalize_domain, validate_repository
from .transfer import LoggingNotifier, NotificationDispatcher, OwnerNotifier, WebhookNotifier

__all__ = [
    "ArchiveReason",
    "ArchivedRegistration",
    "Challenge",
    "ChallengeStatus",
    "ChallengeType",
    "ConsensusResult",
    "DnsConsensusVerifier",
    "FailureReason",
    "FetchResult",
    "GitHubContentsFetcher",
    "HashCheck",
    "LoggingNotifier",
    "NotificationDispatcher",
    "OwnerNotifier",
    "OwnershipGrant",
    "ProofChannel",
    "RepositoryHashVerifier",
    "ResolverPanel",
    "ResolverVote",
    "SweepResult",
    "TrustStateMachine",
    "TrustStatus",
    "VerificationOutcome",
    "VerificationRecord",
    "VerificationService",
    "VerificationStatusReport",
    "VerificationSweep",
    "WebhookNotifier",
    "dnspython_txt_lookup",
    "generate_token",
    "normalize_domain",
    "validate_repository",
]
