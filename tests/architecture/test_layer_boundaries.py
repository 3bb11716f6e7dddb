"""
Import-boundary enforcement for the four top-level packages.

Dependency direction:

    stock_services  ->  stock_modules  ->  stock_kernel
          |
          +-------->  stock_config  (imports none of the others)

1. Kernel boundary   -- stock_kernel/** may not import modules, services
                        or config.
2. Module boundary   -- stock_modules/** may not import services or config.
3. Config isolation  -- stock_config/** imports no other project package.
4. Domain purity     -- stock_kernel/domain/** may not import the ORM, the
                        DB layer or a driver, and only the clock reads the
                        wall clock.

All scanning is done via AST -- these tests are read-only.
"""

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if _matches_any(module, forbidden):
                found.append(f"  {filepath.relative_to(REPO_ROOT)}:{lineno} imports '{module}'")
    return found


def test_packages_exist():
    for package in ("stock_kernel", "stock_modules", "stock_services", "stock_config"):
        assert _python_files(package), f"{package} has no Python files"


def test_kernel_imports_no_outer_layer():
    violations = _violations("stock_kernel", ("stock_modules", "stock_services", "stock_config"))
    assert not violations, (
        "Kernel boundary violation -- stock_kernel/** must not import "
        "modules, services or config:\n" + "\n".join(violations)
    )


def test_modules_import_no_services_or_config():
    violations = _violations("stock_modules", ("stock_services", "stock_config"))
    assert not violations, (
        "Module boundary violation -- stock_modules/** must not import "
        "services or config:\n" + "\n".join(violations)
    )


def test_config_is_isolated():
    violations = _violations("stock_config", ("stock_kernel", "stock_modules", "stock_services"))
    assert not violations, (
        "Config isolation violation -- stock_config/** must not import "
        "other project packages:\n" + "\n".join(violations)
    )


def test_domain_has_no_persistence_imports():
    violations = _violations(
        "stock_kernel/domain",
        ("sqlalchemy", "psycopg2", "sqlite3", "stock_kernel.db", "stock_kernel.models",
         "stock_kernel.services"),
    )
    assert not violations, (
        "Domain purity violation -- stock_kernel/domain/** must stay free of "
        "persistence:\n" + "\n".join(violations)
    )


def test_only_the_clock_reads_wall_time():
    offenders = []
    for package in ("stock_kernel", "stock_modules", "stock_services"):
        for filepath in _python_files(package):
            if filepath.name == "clock.py":
                continue
            tree = ast.parse(filepath.read_text(), filename=str(filepath))
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Attribute)
                    and isinstance(node.value, ast.Name)
                    and f"{node.value.id}.{node.attr}" in {"datetime.now", "datetime.utcnow", "date.today"}
                ):
                    offenders.append(f"  {filepath.relative_to(REPO_ROOT)}:{node.lineno}")
    assert not offenders, (
        "Wall-clock access outside Clock -- inject a Clock instead:\n" + "\n".join(offenders)
    )
