import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _imports(package_dir: Path):
    for py_file in package_dir.rglob("*.py"):
        tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
        rel_path = py_file.relative_to(REPO_ROOT)
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    yield rel_path, node.lineno, alias.name
            elif isinstance(node, ast.ImportFrom):
                yield rel_path, node.lineno, node.module or ""


def _violations(package: str, forbidden):
    found = []
    for rel_path, lineno, name in _imports(REPO_ROOT / "vcc" / package):
        for prefix in forbidden:
            if name == prefix or name.startswith(prefix + "."):
                found.append(f"{rel_path}:{lineno} imports {name}")
    return found


def test_compliance_core_is_pure():
    """Scoring and planning must not reach into adapters, the pipeline or the CLI."""
    violations = _violations("compliance", ["vcc.infrastructure", "vcc.pipeline", "vcc.reporting", "vcc.main", "subprocess"])
    assert not violations, "Compliance core must stay free of I/O layers:\n" + "\n".join(violations)


def test_pipeline_layer_does_not_import_presentation():
    """Pipeline layer must not import from the reporting layer or the CLI."""
    violations = _violations("pipeline", ["vcc.reporting", "vcc.main", "rich", "typer"])
    assert not violations, "Pipeline layer must not import presentation:\n" + "\n".join(violations)


def test_domain_has_no_internal_dependencies():
    violations = _violations("domain", ["vcc.compliance", "vcc.infrastructure", "vcc.pipeline", "vcc.config"])
    assert not violations, "Domain layer must not depend on other layers:\n" + "\n".join(violations)
