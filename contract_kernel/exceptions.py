"""
Typed Exception Hierarchy for the Contract Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval workflows are judged on attribution: every rejected command must
say precisely *why* it was rejected. Generic exceptions like ValueError
force callers to parse messages, which breaks the moment wording changes.

Every error in this module:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (contract id, status, actor, field names)

Example - WRONG way to handle errors:
    try:
        commands.approve(contract_id, actor_id)
    except Exception as e:
        if "status" in str(e):
            ...

Example - RIGHT way:
    try:
        commands.approve(contract_id, actor_id)
    except InvalidStateError as e:
        api_response(code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ContractKernelError (base)
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- ContractVersionNotFoundError
    |   +-- WorkflowDefinitionNotFoundError
    |   +-- ActorNotFoundError
    |
    +-- UnauthorizedError
    |
    +-- InvalidStateError
    |   +-- ConcurrentTransitionError
    |
    +-- ConflictOfInterestError
    |
    +-- ValidationError
    |
    +-- ImmutableResourceError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                         | When Raised
-----------------------------|----------------------------------------------
NOT_FOUND                    | Generic lookup miss
CONTRACT_NOT_FOUND           | Contract id unknown
CONTRACT_VERSION_NOT_FOUND   | Contract has no such (or no current) version
WORKFLOW_DEFINITION_NOT_FOUND| Definition id / version unknown
ACTOR_NOT_FOUND              | Identity provider cannot resolve the actor
UNAUTHORIZED                 | Missing capability, or role/ownership guard failed
INVALID_STATE                | Command not legal from the current status
CONCURRENT_TRANSITION        | Conditional write lost a race
CONFLICT_OF_INTEREST         | Creator attempted finance review of own contract
VALIDATION_ERROR             | Missing/blank remarks, malformed terms
IMMUTABLE_RESOURCE           | Update/delete of a workflow definition, audit
                             | entry, role history entry or frozen field
AUDIT_CHAIN_BROKEN           | Per-contract hash chain failed validation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Nothing is retried automatically. A ConcurrentTransitionError means the
   caller should re-read the contract and decide again.

2. ImmutableResourceError and AuditChainBrokenError indicate tampering or a
   programming error; they are logged at ERROR and never swallowed.
"""


class ContractKernelError(Exception):
    """
    Base exception for all contract kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONTRACT_KERNEL_ERROR"


# Lookup failures


class NotFoundError(ContractKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ContractNotFoundError(NotFoundError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__("Contract", contract_id)


class ContractVersionNotFoundError(NotFoundError):
    """Contract version was not found."""

    code: str = "CONTRACT_VERSION_NOT_FOUND"

    def __init__(self, contract_id: str, version_number: int | None = None):
        self.contract_id = contract_id
        self.version_number = version_number
        label = (
            f"{contract_id} v{version_number}"
            if version_number is not None
            else f"{contract_id} (current)"
        )
        super().__init__("ContractVersion", label)


class WorkflowDefinitionNotFoundError(NotFoundError):
    """Workflow definition with given ID or version was not found."""

    code: str = "WORKFLOW_DEFINITION_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__("WorkflowDefinition", reference)


class ActorNotFoundError(NotFoundError):
    """Identity provider could not resolve the actor."""

    code: str = "ACTOR_NOT_FOUND"

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__("Actor", actor_id)


# Authorization


class UnauthorizedError(ContractKernelError):
    """
    Actor lacks the capability or fails a role/ownership guard.

    `capability` is set when the permission oracle denied the command;
    `reason` describes the failed guard otherwise.
    """

    code: str = "UNAUTHORIZED"

    def __init__(
        self,
        actor_id: str,
        command: str,
        reason: str,
        capability: str | None = None,
    ):
        self.actor_id = actor_id
        self.command = command
        self.reason = reason
        self.capability = capability
        super().__init__(f"Actor {actor_id} may not {command}: {reason}")


# State machine


class InvalidStateError(ContractKernelError):
    """Command is not permitted from the contract version's current status."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        contract_id: str,
        command: str,
        current_status: str,
        reason: str | None = None,
    ):
        self.contract_id = contract_id
        self.command = command
        self.current_status = current_status
        self.reason = reason
        message = (
            f"Cannot {command} contract {contract_id} in status {current_status}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ConcurrentTransitionError(InvalidStateError):
    """
    A conditional write found the version no longer in the expected status.

    Raised when another transaction committed a transition first.
    """

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, contract_id: str, command: str, expected_status: str):
        self.expected_status = expected_status
        super().__init__(
            contract_id,
            command,
            expected_status,
            reason="contract was modified by another transaction",
        )


class ConflictOfInterestError(ContractKernelError):
    """The contract's creator attempted to approve or reject it in finance review."""

    code: str = "CONFLICT_OF_INTEREST"

    def __init__(self, contract_id: str, actor_id: str, command: str):
        self.contract_id = contract_id
        self.actor_id = actor_id
        self.command = command
        super().__init__(
            f"Actor {actor_id} created contract {contract_id} "
            f"and cannot {command} it during finance review"
        )


class ValidationError(ContractKernelError):
    """Command input is missing or malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ImmutableResourceError(ContractKernelError):
    """
    Attempted to modify or delete an immutable record.

    Workflow definitions, audit entries, role history entries, the locked
    workflow reference on a contract and superseded contract versions are
    immutable after creation.
    """

    code: str = "IMMUTABLE_RESOURCE"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutable resource {entity_type} {entity_id}: {reason}"
        )


# Audit


class AuditError(ContractKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Per-contract audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )
