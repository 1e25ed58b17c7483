"""
Module: contract_kernel.db.triggers
Responsibility: Loading, installing, and verifying database immutability
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced (one SQL file set per dialect under sql/<dialect>/):
    - AuditEntry rows: no UPDATE, no DELETE.
    - RoleHistoryEntry rows: no UPDATE, no DELETE.
    - WorkflowDefinition rows: only is_active true -> false; no DELETE.
    - WorkflowStep rows: no UPDATE, no DELETE.
    - Contract rows: workflow lock and identity fields never change; no DELETE.
    - ContractVersion rows: superseded rows frozen, terms frozen after draft,
      decision fields write-once, status only along the approval graph,
      no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION / SQLite RAISE(ABORT) on any violation,
      surfacing as a sqlalchemy DBAPIError whose message starts with
      IMMUTABLE_RESOURCE or INVALID_STATE.
    - FileNotFoundError if SQL files are missing.
    - ValueError for a dialect with no trigger set.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_audit_entries.sql",
    "02_role_history.sql",
    "03_workflow_definitions.sql",
    "04_contracts.sql",
    "05_contract_versions.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES: dict[str, list[str]] = {
    "postgresql": [
        "trg_audit_entries_immutability_update",
        "trg_audit_entries_immutability_delete",
        "trg_role_history_immutability_update",
        "trg_role_history_immutability_delete",
        "trg_workflow_definitions_immutability_update",
        "trg_workflow_definitions_immutability_delete",
        "trg_workflow_steps_immutability_update",
        "trg_workflow_steps_immutability_delete",
        "trg_contracts_lock_update",
        "trg_contracts_immutability_delete",
        "trg_contract_versions_guard_update",
        "trg_contract_versions_immutability_delete",
    ],
    "sqlite": [
        "trg_audit_entries_immutability_update",
        "trg_audit_entries_immutability_delete",
        "trg_role_history_immutability_update",
        "trg_role_history_immutability_delete",
        "trg_workflow_definitions_immutability_update",
        "trg_workflow_definitions_reactivation",
        "trg_workflow_definitions_immutability_delete",
        "trg_workflow_steps_immutability_update",
        "trg_workflow_steps_immutability_delete",
        "trg_contracts_lock_update",
        "trg_contracts_identity_update",
        "trg_contracts_immutability_delete",
        "trg_contract_versions_superseded_update",
        "trg_contract_versions_identity_update",
        "trg_contract_versions_terms_update",
        "trg_contract_versions_write_once_update",
        "trg_contract_versions_status_graph",
        "trg_contract_versions_immutability_delete",
    ],
}


def _dialect_dir(dialect: str) -> Path:
    if dialect not in ALL_TRIGGER_NAMES:
        raise ValueError(f"No trigger set for dialect {dialect!r}")
    return SQL_DIR / dialect


def _load_sql_file(dialect: str, filename: str) -> str:
    return (_dialect_dir(dialect) / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql(dialect: str) -> str:
    """Load and concatenate all trigger SQL files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(dialect, filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def _execute_script(engine: Engine, sql_content: str) -> None:
    with engine.connect() as conn:
        if engine.dialect.name == "sqlite":
            # sqlite3 runs one statement per execute(); trigger bodies contain ';'
            conn.connection.driver_connection.executescript(sql_content)
        else:
            conn.execute(text(sql_content))
        conn.commit()


# =============================================================================
# Public API
# =============================================================================


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers for the engine's dialect.

    Preconditions: Tables must exist (call after Base.metadata.create_all).
    Postconditions: All triggers in ALL_TRIGGER_NAMES[dialect] are installed.
        Installation is idempotent.
    """
    _execute_script(engine, _load_all_trigger_sql(engine.dialect.name))


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for tests and migrations.  Re-install immediately after.
    """
    _execute_script(engine, _load_sql_file(engine.dialect.name, DROP_FILE))


def get_installed_triggers(engine: Engine) -> list[str]:
    """List the kernel's triggers currently present in the database."""
    dialect = engine.dialect.name
    expected = ALL_TRIGGER_NAMES[dialect]
    if dialect == "sqlite":
        query = "SELECT name FROM sqlite_master WHERE type = 'trigger' ORDER BY name"
    else:
        query = "SELECT tgname FROM pg_trigger WHERE NOT tgisinternal ORDER BY tgname"

    with engine.connect() as conn:
        names = [row[0] for row in conn.execute(text(query))]
    return [name for name in names if name in expected]


def get_missing_triggers(engine: Engine) -> list[str]:
    """Triggers that should be installed but aren't."""
    installed = set(get_installed_triggers(engine))
    return sorted(set(ALL_TRIGGER_NAMES[engine.dialect.name]) - installed)


def triggers_installed(engine: Engine) -> bool:
    return not get_missing_triggers(engine)
