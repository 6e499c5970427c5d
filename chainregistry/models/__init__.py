"""chainregistry data models — all Pydantic v2, all frozen (immutable)."""

from chainregistry.models.deployments import (
    ArtifactInfo,
    Deployment,
    DeploymentFilter,
    DeploymentMethod,
    DeploymentStrategy,
    DeploymentType,
    ProxyInfo,
    ProxyUpgrade,
    VerificationInfo,
    VerificationStatus,
    make_deployment_id,
)
from chainregistry.models.execution import (
    DeploymentEvent,
    ExecutionRequest,
    ExecutionResult,
    SafeProposal,
    TransactionEvent,
)
from chainregistry.models.orchestration import (
    VALID_TRANSITIONS,
    ComponentOutcome,
    ComponentSpec,
    ComponentState,
    ExecutionPlan,
    ExecutionStep,
    OrchestrationReport,
    PlanDocument,
    RunOptions,
)
from chainregistry.models.registry import CURRENT_REGISTRY_VERSION, RegistryDocument
from chainregistry.models.sync import (
    PruneCandidates,
    Receipt,
    ReceiptStatus,
    SafeExecutionInfo,
    SyncIssue,
    SyncReport,
)
from chainregistry.models.transactions import (
    Confirmation,
    Operation,
    SafeContext,
    SafeTransaction,
    SafeTxData,
    SafeTxStatus,
    Transaction,
    TransactionStatus,
    make_transaction_id,
)

__all__ = [
    # deployments
    "ArtifactInfo",
    "Deployment",
    "DeploymentFilter",
    "DeploymentMethod",
    "DeploymentStrategy",
    "DeploymentType",
    "ProxyInfo",
    "ProxyUpgrade",
    "VerificationInfo",
    "VerificationStatus",
    "make_deployment_id",
    # transactions
    "Confirmation",
    "Operation",
    "SafeContext",
    "SafeTransaction",
    "SafeTxData",
    "SafeTxStatus",
    "Transaction",
    "TransactionStatus",
    "make_transaction_id",
    # execution
    "DeploymentEvent",
    "ExecutionRequest",
    "ExecutionResult",
    "SafeProposal",
    "TransactionEvent",
    # orchestration
    "VALID_TRANSITIONS",
    "ComponentOutcome",
    "ComponentSpec",
    "ComponentState",
    "ExecutionPlan",
    "ExecutionStep",
    "OrchestrationReport",
    "PlanDocument",
    "RunOptions",
    # sync
    "PruneCandidates",
    "Receipt",
    "ReceiptStatus",
    "SafeExecutionInfo",
    "SyncIssue",
    "SyncReport",
    # registry document
    "CURRENT_REGISTRY_VERSION",
    "RegistryDocument",
]
