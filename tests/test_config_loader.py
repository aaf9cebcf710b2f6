import json

from wakeorpay.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    load_config,
    save_config,
    snake_to_camel,
)
from wakeorpay.config.schema import Config


def test_key_conversion() -> None:
    assert camel_to_snake("graceWindowSeconds") == "grace_window_seconds"
    assert snake_to_camel("sms_window_seconds") == "smsWindowSeconds"
    assert convert_keys({"escalation": {"emergencyContact": "+1"}}) == {
        "escalation": {"emergency_contact": "+1"}
    }
    assert convert_to_camel({"storage": {"data_dir": "/x"}}) == {"storage": {"dataDir": "/x"}}


def test_defaults_when_missing(tmp_path) -> None:
    config = load_config(tmp_path / "config.json")

    assert config.verification.grace_window_seconds == 60
    assert config.verification.stop_code_scheme == "WakeOrPay"
    assert config.escalation.sms_window_seconds == 60
    assert config.escalation_active() is False


def test_save_and_load_round_trip(tmp_path) -> None:
    path = tmp_path / "config.json"
    config = Config()
    config.escalation.emergency_contact = "+15550100"
    config.verification.grace_window_seconds = 90
    save_config(config, path)

    raw = json.loads(path.read_text())
    assert raw["escalation"]["emergencyContact"] == "+15550100"
    assert raw["verification"]["graceWindowSeconds"] == 90

    loaded = load_config(path)
    assert loaded.escalation.emergency_contact == "+15550100"
    assert loaded.escalation.device_id == config.escalation.device_id
    assert loaded.verification.grace_window_seconds == 90
    assert loaded.escalation_active() is True


def test_invalid_file_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"verification": {"graceWindowSeconds": -5}}))
    assert load_config(path).verification.grace_window_seconds == 60

    path.write_text("{broken")
    assert load_config(path).verification.grace_window_seconds == 60


def test_environment_override(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("WAKEORPAY_ESCALATION__EMERGENCY_CONTACT", "+15550199")
    config = load_config(tmp_path / "config.json")
    assert config.escalation.emergency_contact == "+15550199"


def test_escalation_needs_switch_and_contact() -> None:
    config = Config()
    config.escalation.emergency_contact = "+15550100"
    config.escalation.enabled = False
    assert config.escalation_active() is False

    config.escalation.enabled = True
    config.escalation.emergency_contact = "   "
    assert config.escalation_active() is False


def test_data_path_expands_home() -> None:
    config = Config()
    assert "~" not in str(config.data_path)


def test_device_id_is_generated_once(tmp_path) -> None:
    path = tmp_path / "config.json"

    first = load_config(path)
    second = load_config(path)

    assert first.escalation.device_id == second.escalation.device_id
    assert json.loads(path.read_text())["escalation"]["deviceId"] == first.escalation.device_id


def test_device_id_added_to_existing_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"escalation": {"emergencyContact": "+15550100"}}))

    first = load_config(path)
    second = load_config(path)

    assert first.escalation.device_id == second.escalation.device_id
    raw = json.loads(path.read_text())
    assert raw["escalation"] == {"emergencyContact": "+15550100", "deviceId": first.escalation.device_id}


def test_broken_file_is_not_rewritten(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{broken")
    load_config(path)
    assert path.read_text() == "{broken"


def test_file_values_win_over_environment(tmp_path, monkeypatch) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"escalation": {"emergencyContact": "+15550100"}}))
    monkeypatch.setenv("WAKEORPAY_ESCALATION__EMERGENCY_CONTACT", "+15550199")
    monkeypatch.setenv("WAKEORPAY_ESCALATION__TIMEOUT_SECONDS", "3")

    config = load_config(path)

    assert config.escalation.emergency_contact == "+15550100"
    assert config.escalation.timeout_seconds == 3
