"""
contract_services.wiring -- assemble a ContractCommandService from config.

Responsibility:
    One place that turns the active configuration into kernel inputs
    (capability table, bootstrap workflow template) and binds them to a
    session with the chosen identity provider and dispatcher.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor

from sqlalchemy.orm import Session

from contract_config import get_active_config, to_workflow_template
from contract_config.schema import ContractConfigurationSet
from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.domain.collaborators import IdentityProvider, NotificationDispatcher
from contract_kernel.services.contract_command_service import ContractCommandService
from contract_kernel.services.role_history_service import RoleHistoryService
from contract_services.identity import RoleHistoryIdentityProvider
from contract_services.notifications import LoggingNotificationDispatcher
from contract_services.permission_oracle import CapabilityTableOracle


def build_command_service(
    session: Session,
    *,
    config: ContractConfigurationSet | None = None,
    identity_provider: IdentityProvider | None = None,
    dispatcher: NotificationDispatcher | None = None,
    clock: Clock | None = None,
    notification_executor: Executor | None = None,
    auto_commit: bool = True,
) -> ContractCommandService:
    """
    Build a command service bound to ``session``.

    Defaults: the active configuration set, role-history identity, and
    the logging dispatcher.  When the set asks for async dispatch and no
    executor is given, notifications go through a thread pool sized by
    ``notifications.max_workers``; the caller owns its shutdown via
    ``service.notification_executor``.
    """
    config = config or get_active_config()
    clock = clock or SystemClock()
    if notification_executor is None and config.notifications.async_dispatch:
        notification_executor = ThreadPoolExecutor(
            max_workers=config.notifications.max_workers,
            thread_name_prefix="contract-notify",
        )
    if identity_provider is None:
        identity_provider = RoleHistoryIdentityProvider(RoleHistoryService(session, clock))

    return ContractCommandService(
        session,
        CapabilityTableOracle.from_config(config),
        identity_provider,
        dispatcher=dispatcher or LoggingNotificationDispatcher(),
        clock=clock,
        auto_commit=auto_commit,
        notification_executor=notification_executor,
        default_template=to_workflow_template(config.default_workflow),
    )
