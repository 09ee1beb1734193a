"""Construction of the service graph shared by all requests."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from playerlink.bootstrap import ConfigBootstrapGuard
from playerlink.client_signing import ClientSigningPreparer
from playerlink.identity import IdentityResolver
from playerlink.ledger import LedgerClient, LedgerSettings
from playerlink.provisioning import ProvisioningOrchestrator
from playerlink.recovery import RecoveryReconciler


@dataclass(frozen=True)
class Services:
    ledger: Any
    store: Any
    identity: IdentityResolver
    orchestrator: ProvisioningOrchestrator
    reconciler: RecoveryReconciler
    preparer: ClientSigningPreparer
    bootstrap: ConfigBootstrapGuard


def build_services(config: Mapping[str, Any], store, ledger: Optional[Any] = None) -> Services:
    """
    Wire the provisioning components around one ledger client and one store.

    Args:
        config: Application configuration
        store: Profile store (SQL or in-memory)
        ledger: Ledger client; built from ``config`` when omitted
    """
    if ledger is None:
        ledger = LedgerClient(LedgerSettings.from_config(config))

    reconciler = RecoveryReconciler(ledger, store)
    return Services(
        ledger=ledger,
        store=store,
        identity=IdentityResolver(store, config["JWT_SECRET"], config.get("JWT_ALGORITHM") or "HS256"),
        orchestrator=ProvisioningOrchestrator(ledger, store, reconciler),
        reconciler=reconciler,
        preparer=ClientSigningPreparer(ledger, store),
        bootstrap=ConfigBootstrapGuard(ledger),
    )
