"""Adapter registry: tool name to lazy-import class path."""

AVAILABLE_ADAPTERS: dict[str, str] = {
    "semgrep": "secgate.scanning.adapters.semgrep.SemgrepAdapter",
    "trivy": "secgate.scanning.adapters.trivy.TrivyAdapter",
    "gitleaks": "secgate.scanning.adapters.gitleaks.GitleaksAdapter",
    "npm-audit": "secgate.scanning.adapters.npm_audit.NpmAuditAdapter",
    "bandit": "secgate.scanning.adapters.bandit.BanditAdapter",
}


def import_adapter(dotted_path: str):
    """Import an adapter class from its dotted module path."""
    import importlib

    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def build_adapters(names: list[str] | None = None, **kwargs) -> list:
    """Instantiate the named adapters (default: all) with shared options."""
    selected = names or list(AVAILABLE_ADAPTERS)
    unknown = [n for n in selected if n not in AVAILABLE_ADAPTERS]
    if unknown:
        raise ValueError(f"Unknown adapter(s): {', '.join(unknown)}")
    return [import_adapter(AVAILABLE_ADAPTERS[name])(**kwargs) for name in selected]
