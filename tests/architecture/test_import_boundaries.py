"""
Import-boundary enforcement.

1. Kernel boundary      -- workflow_kernel/** may not import workflow_batch,
                           workflow_config or workflow_modules.
2. Domain purity        -- workflow_kernel/domain/** may not import the ORM,
                           DB drivers, kernel models/db or services.
3. Domain no-impure     -- domain code other than the clock may not read
                           the wall clock or the environment.
4. Config centralisation -- only workflow_config/** may import the loader
                           and schema sub-modules directly.
5. Batch boundary       -- workflow_batch/** may not import workflow_modules.

All scanning is done via AST; these tests are read-only.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted((ROOT / package).rglob("*.py"))


def _parse(filepath: Path) -> ast.AST | None:
    try:
        return ast.parse(filepath.read_text(), filename=str(filepath))
    except (SyntaxError, UnicodeDecodeError):
        return None


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = _parse(filepath)
    if tree is None:
        return []
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _extract_attribute_calls(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, 'receiver.attr') for two-level attribute references."""
    tree = _parse(filepath)
    if tree is None:
        return []
    return [
        (node.lineno, f"{node.value.id}.{node.attr}")
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
    ]


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    return [
        f"  {path.relative_to(ROOT)}:{lineno} imports '{module}'"
        for path in _python_files(package)
        for lineno, module in _extract_imports(path)
        if _matches_any(module, forbidden)
    ]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelBoundary:

    def test_kernel_never_imports_upper_layers(self):
        violations = _violations(
            "workflow_kernel", ("workflow_batch", "workflow_config", "workflow_modules"),
        )
        assert not violations, (
            "Kernel boundary violation:\n" + "\n".join(violations)
        )


class TestDomainPurity:

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "sqlite3",
        "yaml",
        "workflow_kernel.models",
        "workflow_kernel.db",
        "workflow_kernel.services",
    )

    def test_domain_has_no_io_imports(self):
        violations = _violations("workflow_kernel/domain", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Domain purity violation:\n" + "\n".join(violations)
        )


class TestDomainNoImpureFunctions:

    FORBIDDEN_CALLS = frozenset({
        "datetime.now",
        "datetime.utcnow",
        "date.today",
        "time.time",
        "os.environ",
        "os.getenv",
    })
    ALLOWED_FILES = frozenset({"clock.py"})

    def test_domain_reads_time_only_through_the_clock(self):
        violations = [
            f"  {path.relative_to(ROOT)}:{lineno} uses {call}"
            for path in _python_files("workflow_kernel/domain")
            if path.name not in self.ALLOWED_FILES
            for lineno, call in _extract_attribute_calls(path)
            if call in self.FORBIDDEN_CALLS
        ]
        assert not violations, "\n".join(violations)


class TestConfigCentralisation:

    INTERNAL = ("workflow_config.loader", "workflow_config.schema")

    def test_only_config_package_imports_internals(self):
        violations = [
            v
            for package in ("workflow_kernel", "workflow_batch", "workflow_modules")
            for v in _violations(package, self.INTERNAL)
        ]
        assert not violations, (
            "Use workflow_config.get_active_config() instead:\n" + "\n".join(violations)
        )


class TestBatchBoundary:

    def test_batch_never_imports_modules(self):
        violations = _violations("workflow_batch", ("workflow_modules",))
        assert not violations, "\n".join(violations)
