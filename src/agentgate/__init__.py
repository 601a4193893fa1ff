from .config import GateConfig, LogLevel, TransportConfig, load_gate_config_from_env
from .exceptions import (
    AgentGateError,
    ConfigurationError,
    ConflictError,
    ExpiredError,
    FailedPreconditionError,
    InvalidArgumentError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from .grants import GrantStore, effective_status, restrictions_for_scope
from .logging import (
    GateFormatter,
    GateLoggerAdapter,
    get_gate_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .models import (
    Agent,
    AgentRequest,
    ApprovalStats,
    Decision,
    DecisionKind,
    GranteeType,
    GrantRestrictions,
    GrantSource,
    GrantStatus,
    Network,
    NotificationEvent,
    Organization,
    PermissionGrant,
    PermissionSummary,
    RequestPriority,
    RequestStatus,
    ReviewDecision,
    Role,
    Scope,
    Subject,
    Tier,
)
from .notifications import LoggingNotificationSink, NullNotificationSink
from .permissions import (
    DEFAULT_TIER_POLICIES,
    AgentCatalog,
    AssignmentPolicy,
    ScopeResolver,
    TierPolicy,
    rank,
    satisfies,
)
from .service import AgentAccessService
from .storage import InMemoryIdentityProvider, InMemoryStore
from .summary import PermissionSummarizer
from .workflow import RequestWorkflow

__all__ = [
    'DEFAULT_TIER_POLICIES',
    'Agent',
    'AgentAccessService',
    'AgentCatalog',
    'AgentGateError',
    'AgentRequest',
    'ApprovalStats',
    'AssignmentPolicy',
    'ConfigurationError',
    'ConflictError',
    'Decision',
    'DecisionKind',
    'ExpiredError',
    'FailedPreconditionError',
    'GateConfig',
    'GateFormatter',
    'GateLoggerAdapter',
    'GrantRestrictions',
    'GrantSource',
    'GrantStatus',
    'GrantStore',
    'GranteeType',
    'InMemoryIdentityProvider',
    'InMemoryStore',
    'InvalidArgumentError',
    'LimitExceededError',
    'LogLevel',
    'LoggingNotificationSink',
    'Network',
    'NotFoundError',
    'NotificationEvent',
    'NullNotificationSink',
    'Organization',
    'PermissionDeniedError',
    'PermissionGrant',
    'PermissionSummarizer',
    'PermissionSummary',
    'RequestPriority',
    'RequestStatus',
    'RequestWorkflow',
    'ReviewDecision',
    'Role',
    'Scope',
    'ScopeResolver',
    'StorageError',
    'Subject',
    'Tier',
    'TierPolicy',
    'TransportConfig',
    'effective_status',
    'get_gate_logger',
    'load_gate_config_from_env',
    'rank',
    'redact_secrets',
    'restrictions_for_scope',
    'safe_log_value',
    'safe_preview',
    'satisfies',
    'setup_logging',
]
