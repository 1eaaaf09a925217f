"""Registry wiring and command-script replay.

This module builds a MedicalRegistryService wired to its audit trail and
sinks from configuration, and replays scripts of registry commands against
it. A script is a JSON list of commands (or an object with a ``commands``
list)::

    [
      {"op": "register_doctor", "caller": "0xadmin",
       "args": {"doctor_id": 1, "identity": "0xdoc", "name": "Ada",
                "qualification": "MD", "workplace": "General",
                "certification_hash": "QmCert"}},
      {"op": "register_patient", "caller": "0xdoc",
       "args": {"doctor_id": 1, "patient_id": 1, "identity": "0xpat",
                "name": "Bob", "age": 30}}
    ]

Each command yields one Result; a failing command is reported and the
replay moves on, exactly as independent external calls would.

Architecture:
    - Infrastructure (audit log, dispatcher, sinks) is injected into the
      domain service here and nowhere else
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from medregistry.domain.access_guard import OPERATION_RULES
from medregistry.domain.ports import RegistryError, Result
from medregistry.domain.services import MedicalRegistryService
from medregistry.infrastructure.audit import AuditDispatcher, AuditLog, JsonLinesAuditSink, LoggingAuditSink
from medregistry.infrastructure.config_manager import RegistryConfig

logger = logging.getLogger(__name__)

# Operations that take no caller principal.
CALLERLESS_OPERATIONS = frozenset({"view_admin", "is_granted"})


class ScriptCommand(BaseModel):
    """One registry call in a replay script."""

    model_config = ConfigDict(extra="forbid")

    op: str = Field(..., description="Operation name")
    caller: Optional[str] = Field(None, description="Authenticated caller principal")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments")


@dataclass
class RegistryRuntime:
    """A wired registry plus the infrastructure it publishes to."""
    service: MedicalRegistryService
    audit: AuditLog
    dispatcher: Optional[AuditDispatcher] = None

    def close(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.close()


def create_registry(config: Optional[RegistryConfig] = None) -> RegistryRuntime:
    """Build a registry service from configuration.

    Parameters:
        config: Registry configuration; defaults are used when omitted

    Returns:
        RegistryRuntime: Service, audit trail and dispatcher (if enabled)
    """
    config = config or RegistryConfig()

    dispatcher = None
    if config.audit_dispatch_enabled:
        sinks = [LoggingAuditSink()]
        if config.audit_file:
            sinks.append(JsonLinesAuditSink(config.audit_file))
            logger.info(f"Audit events will be written to {config.audit_file}")
        dispatcher = AuditDispatcher(sinks)

    audit = AuditLog(dispatcher=dispatcher)
    service = MedicalRegistryService(admin=config.admin, audit=audit)
    logger.info(f"Registry initialized with administrator {config.admin}")
    return RegistryRuntime(service=service, audit=audit, dispatcher=dispatcher)


def load_script(path: Union[str, Path]) -> List[ScriptCommand]:
    """Read and validate a replay script.

    Raises:
        FileNotFoundError: If the script does not exist
        ValueError: If the script is not valid JSON or a command is malformed
    """
    script_path = Path(path)
    if not script_path.exists():
        raise FileNotFoundError(f"Script not found: {path}")

    try:
        with open(script_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in script: {str(e)}")

    if isinstance(data, dict):
        data = data.get("commands", [])
    if not isinstance(data, list):
        raise ValueError("Script must be a list of commands or an object with a 'commands' list")

    try:
        return [ScriptCommand.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise ValueError(f"Malformed command in script: {e}")


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def execute_command(service: MedicalRegistryService, command: ScriptCommand) -> Result:
    """Run one command and capture its outcome.

    Registry errors and argument mismatches become failure Results; any
    other exception propagates.
    """
    details = {"op": command.op, "caller": command.caller}
    if command.op not in OPERATION_RULES:
        return Result.failure_result(
            f"Unknown operation: {command.op}", error_type="UnknownOperation", error_details=details
        )

    operation = getattr(service, command.op)
    try:
        if command.op in CALLERLESS_OPERATIONS:
            value = operation(**command.args)
        else:
            value = operation(command.caller, **command.args)
    except RegistryError as e:
        return Result.failure_result(e, error_details=details)
    except TypeError as e:
        # Missing or unexpected keyword arguments in the script.
        return Result.failure_result(e, error_type="InvalidArguments", error_details=details)
    return Result.success_result(_to_plain(value))


def run_script(service: MedicalRegistryService, commands: List[ScriptCommand]) -> List[Result]:
    """Replay ``commands`` in order, one Result per command."""
    results: List[Result] = []
    for index, command in enumerate(commands):
        result = execute_command(service, command)
        if result.is_failure():
            result.error_details["index"] = index
            logger.info(f"Command {index} ({command.op}) failed: {result.error_type}: {result.error}")
        results.append(result)
    return results
