"""Tests for registry wiring and command-script replay."""

import json

import pytest

from medregistry.infrastructure.config_manager import RegistryConfig
from medregistry.main import ScriptCommand, create_registry, execute_command, load_script, run_script

ADMIN = "0xadmin"


def command(op, caller=None, **args):
    return ScriptCommand(op=op, caller=caller, args=args)


SCENARIO = [
    command("register_doctor", ADMIN, doctor_id=1, identity="0xdoc", name="Ada", qualification="MD",
            workplace="General", certification_hash="QmCert"),
    command("register_patient", "0xdoc", doctor_id=1, patient_id=1, identity="0xpat", name="Bob", age=30),
    command("update_patient_disease", "0xdoc", doctor_id=1, patient_id=1, disease="flu"),
    command("update_patient_disease", "0xdoc", doctor_id=1, patient_id=1, disease="flu"),
    command("is_granted", doctor_id=1, patient_id=1),
]


@pytest.fixture
def runtime():
    runtime = create_registry(RegistryConfig(admin=ADMIN, audit_dispatch_enabled=False))
    yield runtime
    runtime.close()


class TestCreateRegistry:
    """Test wiring from configuration."""

    def test_dispatch_disabled(self, runtime):
        """Test wiring without a background dispatcher."""
        assert runtime.dispatcher is None
        assert runtime.audit.dispatcher is None
        assert runtime.service.view_admin() == ADMIN

    def test_defaults(self):
        """Test wiring with the default configuration."""
        runtime = create_registry()
        try:
            assert runtime.dispatcher is not None
            assert runtime.service.view_admin() == "admin"
        finally:
            runtime.close()

    def test_audit_file_receives_committed_events(self, tmp_path):
        """Test that committed events reach the audit file."""
        audit_file = tmp_path / "audit.jsonl"
        runtime = create_registry(RegistryConfig(admin=ADMIN, audit_file=str(audit_file)))
        results = run_script(runtime.service, SCENARIO)
        runtime.close()

        assert [result.success for result in results] == [True, True, True, False, True]
        events = [json.loads(line) for line in audit_file.read_text(encoding="utf-8").splitlines()]
        assert [event["event_type"] for event in events] == ["DoctorRegistered", "PatientRegistered", "DiseaseAdded"]
        assert [event["sequence"] for event in events] == [1, 2, 3]


class TestExecuteCommand:
    """Test single-command execution."""

    def test_success_value(self, runtime):
        """Test that a successful command returns its value."""
        result = execute_command(runtime.service, SCENARIO[0])
        assert result.is_success()
        assert result.value == 1

    def test_model_values_are_plain(self, runtime):
        """Test that returned records are plain dictionaries."""
        run_script(runtime.service, SCENARIO[:2])
        result = execute_command(runtime.service, command("view_patient_details", "0xpat", patient_id=1))
        assert result.value["name"] == "Bob"
        assert result.value["diseases"] == []

    def test_registry_error_becomes_failure(self, runtime):
        """Test that a RegistryError becomes a failure result."""
        result = execute_command(runtime.service, command("add_medicine", "0xnobody", medicine_id=1, name="A",
                                                          expiry="2027", dosage="1mg", price=5))
        assert result.is_failure()
        assert result.error_type == "UnauthorizedError"
        assert result.error_details == {"op": "add_medicine", "caller": "0xnobody"}

    def test_unknown_operation(self, runtime):
        """Test that an unknown operation becomes a failure result."""
        result = execute_command(runtime.service, command("drop_tables", ADMIN))
        assert result.error_type == "UnknownOperation"

    def test_bad_arguments(self, runtime):
        """Test that wrong arguments become a failure result."""
        result = execute_command(runtime.service, command("view_medicine", ADMIN, medicine=1))
        assert result.error_type == "InvalidArguments"

    def test_callerless_operation(self, runtime):
        """Test running a public operation without a caller."""
        result = execute_command(runtime.service, command("view_admin"))
        assert result.value == ADMIN

    def test_string_records_rejected(self, runtime):
        """Test that a string given for the records list fails instead of being split."""
        run_script(runtime.service, SCENARIO[:1])
        result = execute_command(runtime.service, command(
            "register_patient", "0xdoc", doctor_id=1, patient_id=1, identity="0xpat",
            name="Bob", age=30, records="QmAB"
        ))
        assert result.error_type == "InvalidInputError"
        assert not runtime.service.patients.exists(1)


class TestRunScript:
    """Test script replay."""

    def test_failures_do_not_stop_replay(self, runtime):
        """Test that replay continues past failed commands."""
        results = run_script(runtime.service, SCENARIO)

        assert results[3].error_type == "DuplicateError"
        assert results[3].error_details["index"] == 3
        assert results[4].value is True
        assert runtime.audit.get_log_count() == 3


class TestLoadScript:
    """Test script parsing."""

    def test_list_form(self, tmp_path):
        """Test loading a script given as a list."""
        path = tmp_path / "script.json"
        path.write_text(json.dumps([{"op": "view_admin"}]), encoding="utf-8")
        commands = load_script(path)
        assert commands == [ScriptCommand(op="view_admin")]

    def test_object_form(self, tmp_path):
        """Test loading a script wrapped in an object."""
        path = tmp_path / "script.json"
        path.write_text(json.dumps({"commands": [{"op": "view_medicine", "caller": ADMIN,
                                                  "args": {"medicine_id": 1}}]}), encoding="utf-8")
        commands = load_script(str(path))
        assert commands[0].args == {"medicine_id": 1}

    def test_missing_file(self, tmp_path):
        """Test that a missing script raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_script(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        """Test that a malformed script raises ValueError."""
        path = tmp_path / "script.json"
        path.write_text("[", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_script(path)

    def test_not_a_list(self, tmp_path):
        """Test that a script that is not a command list raises ValueError."""
        path = tmp_path / "script.json"
        path.write_text('"view_admin"', encoding="utf-8")
        with pytest.raises(ValueError):
            load_script(path)

    def test_malformed_command(self, tmp_path):
        """Test that a command with unknown fields raises ValueError."""
        path = tmp_path / "script.json"
        path.write_text(json.dumps([{"op": "view_admin", "unexpected": 1}]), encoding="utf-8")
        with pytest.raises(ValueError, match="Malformed command"):
            load_script(path)
