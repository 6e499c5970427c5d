"""Parse YAML orchestration plan documents.

Expected shape::

    group: Core protocol
    components:
      Token:
        script: script/DeployToken.s.sol
      Vault:
        script: script/DeployVault.s.sol
        deps: [Token]
        env:
          VAULT_FEE: "30"

Components are kept in declaration order; that order breaks ties during
topological sorting.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from chainregistry.core.component_graph import ComponentGraph
from chainregistry.core.errors import PlanDocumentError
from chainregistry.models.orchestration import ComponentSpec, ExecutionPlan, PlanDocument


def load_plan_file(path: Path | str) -> PlanDocument:
    path = Path(path)
    if not path.exists():
        raise PlanDocumentError(f"orchestration file not found: {path}")
    return parse_plan(path.read_text(encoding="utf-8"))


def parse_plan(text: str) -> PlanDocument:
    """Parse and validate plan YAML text into a ``PlanDocument``."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PlanDocumentError(f"failed to parse YAML: {exc}") from exc
    return plan_from_mapping(raw)


def plan_from_mapping(raw: Any) -> PlanDocument:
    if not isinstance(raw, dict):
        raise PlanDocumentError("orchestration document must be a mapping")

    group = raw.get("group")
    if not group or not isinstance(group, str):
        raise PlanDocumentError("group name is required")

    components = raw.get("components")
    if not components:
        raise PlanDocumentError("at least one component is required")
    if not isinstance(components, dict):
        raise PlanDocumentError("components must be a mapping of name to component")

    specs = []
    for index, (name, body) in enumerate(components.items()):
        specs.append(_component(str(name), body, index))
    return PlanDocument(group=group, components=specs)


def _component(name: str, body: Any, index: int) -> ComponentSpec:
    if not isinstance(body, dict):
        raise PlanDocumentError(f"component '{name}' must be a mapping")
    script = body.get("script")
    if not script:
        raise PlanDocumentError(f"component '{name}': script is required")

    deps = body.get("deps") or []
    if isinstance(deps, str):
        deps = [deps]
    if not isinstance(deps, list):
        raise PlanDocumentError(f"component '{name}': deps must be a list")

    env = body.get("env") or {}
    if not isinstance(env, dict):
        raise PlanDocumentError(f"component '{name}': env must be a mapping")

    return ComponentSpec(
        name=name,
        script=str(script),
        deps=[str(d) for d in deps],
        env={str(k): _env_value(v) for k, v in env.items()},
        declaration_index=index,
    )


def _env_value(value: Any) -> str:
    # YAML turns true/30 into bool/int; scripts only ever see strings.
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def build_execution_plan(document: PlanDocument) -> ExecutionPlan:
    """Validate the dependency graph and linearise it."""
    return ComponentGraph(document.components).execution_plan(document.group)
