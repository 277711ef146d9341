"""Compiler artifact loading.

Understands three JSON shapes:

  * solc standard-JSON output (``{"contracts": {file: {name: {...}}}}``),
    also when wrapped as a Hardhat build-info (``{"output": {...}}``);
  * Hardhat artifacts (``_format: hh-sol-artifact-1``), which carry no
    source maps or storage layout;
  * Foundry artifacts (``bytecode: {object, sourceMap}``).

Missing fields become empty values; an abstract contract therefore loads with
empty bytecode rather than failing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gaslens.core.errors import ArtifactError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass
class CompiledContract:
    """A single compiled contract."""

    name: str
    abi: list[dict[str, Any]] = field(default_factory=list)
    bytecode: str = ""
    deployed_bytecode: str = ""
    source_map: str = ""
    deployed_source_map: str = ""
    storage_layout: dict[str, Any] = field(default_factory=dict)
    source_path: str = ""
    file_index: int | None = None
    method_identifiers: dict[str, str] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return f"{self.source_path}:{self.name}" if self.source_path else self.name


def _code_and_map(section: Any) -> tuple[str, str]:
    if isinstance(section, str):
        return section, ""
    if isinstance(section, dict):
        return str(section.get("object") or ""), str(section.get("sourceMap") or "")
    return "", ""


def _from_standard_json(output: dict[str, Any]) -> list[CompiledContract]:
    source_ids = {
        name: data.get("id")
        for name, data in (output.get("sources") or {}).items()
        if isinstance(data, dict)
    }
    contracts: list[CompiledContract] = []
    for source_name, file_contracts in (output.get("contracts") or {}).items():
        if not isinstance(file_contracts, dict):
            continue
        for contract_name, data in file_contracts.items():
            if not isinstance(data, dict):
                continue
            evm = data.get("evm") or {}
            bytecode, source_map = _code_and_map(evm.get("bytecode"))
            deployed, deployed_map = _code_and_map(evm.get("deployedBytecode"))
            file_index = source_ids.get(source_name)
            contracts.append(CompiledContract(
                name=contract_name,
                abi=data.get("abi") or [],
                bytecode=bytecode,
                deployed_bytecode=deployed,
                source_map=source_map,
                deployed_source_map=deployed_map,
                storage_layout=data.get("storageLayout") or {},
                source_path=source_name,
                file_index=file_index if isinstance(file_index, int) else None,
                method_identifiers=evm.get("methodIdentifiers") or {},
            ))
    return contracts


def _from_single_artifact(doc: dict[str, Any], fallback_name: str) -> CompiledContract:
    bytecode, source_map = _code_and_map(doc.get("bytecode"))
    deployed, deployed_map = _code_and_map(doc.get("deployedBytecode"))
    source_path = doc.get("sourceName") or (doc.get("ast") or {}).get("absolutePath") or ""
    name = doc.get("contractName") or fallback_name
    file_index = doc.get("id")
    return CompiledContract(
        name=name,
        abi=doc.get("abi") or [],
        bytecode=bytecode,
        deployed_bytecode=deployed,
        source_map=source_map,
        deployed_source_map=deployed_map,
        storage_layout=doc.get("storageLayout") or {},
        source_path=str(source_path),
        file_index=file_index if isinstance(file_index, int) else None,
        method_identifiers=doc.get("methodIdentifiers") or {},
    )


def read_contracts(doc: Any, fallback_name: str = "Contract") -> list[CompiledContract]:
    """Every contract described by an artifact document."""
    if not isinstance(doc, dict):
        raise ArtifactError(ErrorCode.ARTIFACT_INVALID, "Artifact must be a JSON object")
    if isinstance(doc.get("output"), dict) and "contracts" in doc["output"]:
        doc = doc["output"]
    if "contracts" in doc:
        return _from_standard_json(doc)
    if "abi" in doc or "bytecode" in doc:
        return [_from_single_artifact(doc, fallback_name)]
    raise ArtifactError(
        ErrorCode.ARTIFACT_INVALID,
        "Unrecognised artifact: expected solc standard JSON, Hardhat or Foundry output",
    )


def _read_json(path: Path) -> Any:
    if not path.is_file():
        raise ArtifactError(ErrorCode.ARTIFACT_NOT_FOUND, f"Artifact not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArtifactError(ErrorCode.ARTIFACT_INVALID, f"Cannot read {path}: {e}") from e


def load_artifact(
    path_or_dict: str | Path | dict[str, Any],
    contract: str | None = None,
) -> CompiledContract:
    """Load one contract from an artifact file or already-parsed document.

    Args:
        path_or_dict: JSON file path or decoded document.
        contract: ``Name`` or ``path:Name``; required when the artifact
            holds more than one contract.

    Raises:
        ArtifactError: unreadable or unrecognised artifact, unknown
            contract name, or several contracts and no selector.
    """
    if isinstance(path_or_dict, dict):
        doc, fallback = path_or_dict, "Contract"
    else:
        path = Path(path_or_dict)
        doc, fallback = _read_json(path), path.stem

    contracts = read_contracts(doc, fallback)
    if contract:
        matches = [c for c in contracts if contract in (c.name, c.qualified_name)]
        if not matches:
            raise ArtifactError(
                ErrorCode.CONTRACT_NOT_FOUND,
                f"Contract {contract!r} not found; available: "
                + ", ".join(c.qualified_name for c in contracts),
            )
    else:
        matches = contracts

    if not matches:
        raise ArtifactError(ErrorCode.CONTRACT_NOT_FOUND, "Artifact contains no contracts")
    if len(matches) > 1:
        raise ArtifactError(
            ErrorCode.CONTRACT_AMBIGUOUS,
            "Several contracts found, select one of: "
            + ", ".join(c.qualified_name for c in matches),
        )

    selected = matches[0]
    logger.debug(
        "Loaded artifact for %s (%d runtime bytes)",
        selected.qualified_name, len(selected.deployed_bytecode) // 2,
        extra={"contract": selected.name},
    )
    return selected
