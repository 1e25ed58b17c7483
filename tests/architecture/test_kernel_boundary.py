"""
Kernel boundary tests.

1. contract_kernel/** may NOT import contract_services or contract_config.
   The kernel never depends upward.

2. contract_kernel/domain/** is pure: no ORM, database driver or
   contract_kernel.db imports.

3. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

from contract_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    rel = filepath.relative_to(REPO_ROOT)
                    found.append(f"  {rel}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    """contract_kernel/** must not import contract_services or contract_config."""

    def test_kernel_sources_exist(self):
        assert _python_files("contract_kernel")

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("contract_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: contract_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestKernelDomainPurity:
    """contract_kernel/domain/** must not import ORM or DB packages."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "contract_kernel.db",
        "contract_kernel.models",
        "contract_kernel.services",
    )

    def test_domain_no_orm_imports(self):
        violations = _violations("contract_kernel/domain", self.FORBIDDEN_MODULES)
        assert not violations, (
            "Domain purity violation: contract_kernel/domain/** must not "
            "import persistence code:\n" + "\n".join(violations)
        )


class TestInvariantDeclaration:

    def test_invariants_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant)
        assert KernelInvariant.ATOMIC_AUDIT in ALL_KERNEL_INVARIANTS

    def test_every_invariant_is_documented(self):
        source = (REPO_ROOT / "contract_kernel" / "invariants.py").read_text(encoding="utf-8")
        tree = ast.parse(source)
        enum_body = next(
            node.body for node in ast.walk(tree)
            if isinstance(node, ast.ClassDef) and node.name == "KernelInvariant"
        )
        documented = set()
        for current, following in zip(enum_body, enum_body[1:]):
            if (
                isinstance(current, ast.Assign)
                and isinstance(following, ast.Expr)
                and isinstance(following.value, ast.Constant)
                and isinstance(following.value.value, str)
            ):
                documented.add(current.targets[0].id)
        assert documented == {member.name for member in KernelInvariant}
