"""
Rejection remark audiences (``contract_kernel.domain.remarks``).

A rejected version carries up to three remark channels.  This module
decides which of them a reader may see:

    channel            | written by                 | visible to
    -------------------|----------------------------|------------------------
    remarks_internal   | finance reject             | legal, finance, admin
    remarks_client     | finance reject / send      | everyone
    client_remark      | client reject              | everyone

``rejection_remarks`` is the legacy single-text mirror.  It holds internal
text after a finance rejection, so clients never see it.
"""

from __future__ import annotations

from dataclasses import dataclass

from contract_kernel.domain.dtos import ContractVersionRecord
from contract_kernel.domain.roles import Role


@dataclass(frozen=True)
class VisibleRemarks:
    remarks_internal: str | None
    remarks_client: str | None
    client_remark: str | None
    rejection_remarks: str | None


def visible_remarks(version: ContractVersionRecord, role: Role) -> VisibleRemarks:
    if role == Role.CLIENT:
        legacy = version.rejection_remarks if version.client_remark else None
        return VisibleRemarks(
            remarks_internal=None,
            remarks_client=version.remarks_client,
            client_remark=version.client_remark,
            rejection_remarks=legacy,
        )
    return VisibleRemarks(
        remarks_internal=version.remarks_internal,
        remarks_client=version.remarks_client,
        client_remark=version.client_remark,
        rejection_remarks=version.rejection_remarks,
    )
