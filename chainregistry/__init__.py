"""chainregistry: deterministic smart-contract deployment registry.

Tracks contract deployments across chains and namespaces, orchestrates
dependency-ordered deployment scripts, and reconciles pending records
against chain RPCs and the Safe Transaction Service.
"""

__version__ = "0.3.0"
__description__ = "Multi-chain deployment registry with orchestration and Safe sync"

from chainregistry.core.registry_store import RegistryStore
from chainregistry.core.resolver import DeploymentResolver
from chainregistry.core.executor import OrchestrationExecutor
from chainregistry.core.sync import SyncEngine

__all__ = [
    "RegistryStore",
    "DeploymentResolver",
    "OrchestrationExecutor",
    "SyncEngine",
    "__version__",
]
