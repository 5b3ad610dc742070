import pytest
from conftest import InMemoryPresetStore
from spoilr.domain.errors import BuiltinPresetError, UnknownPresetError
from spoilr.templates.presets import DEFAULT_PRESET_ID, DEFAULT_TEMPLATE, EMP_TEMPLATE, PresetManager


@pytest.fixture
def manager():
    return PresetManager(InMemoryPresetStore())


def test_builtins_listed_first(manager):
    ids = [p.id for p in manager.list_presets()]
    assert ids[:2] == [DEFAULT_PRESET_ID, "default-emp"]


def test_current_defaults_to_default_preset(manager):
    assert manager.current_id() == DEFAULT_PRESET_ID
    assert manager.current_template() == DEFAULT_TEMPLATE


def test_save_then_use_then_get(manager):
    preset = manager.save("Mine", "%FILE_NAME%")
    manager.set_current(preset.id)
    assert manager.current_template() == "%FILE_NAME%"


def test_save_rejects_empty(manager):
    with pytest.raises(ValueError):
        manager.save("  ", "x")
    with pytest.raises(ValueError):
        manager.save("name", "")


def test_set_current_unknown(manager):
    with pytest.raises(UnknownPresetError):
        manager.set_current("nope")


def test_set_template_on_builtin_stores_override(manager):
    manager.set_template("custom text")
    assert manager.current_template() == "custom text"
    assert manager.default_template() == DEFAULT_TEMPLATE

    manager.delete(DEFAULT_PRESET_ID)
    assert manager.current_template() == DEFAULT_TEMPLATE


def test_builtin_without_override_cannot_be_deleted(manager):
    with pytest.raises(BuiltinPresetError):
        manager.delete("default-emp")


def test_delete_unknown(manager):
    with pytest.raises(UnknownPresetError):
        manager.delete("nope")


def test_deleting_current_resets_to_default(manager):
    preset = manager.save("Mine", "%FILE_NAME%")
    manager.set_current(preset.id)
    manager.delete(preset.id)
    assert manager.current_id() == DEFAULT_PRESET_ID
    assert manager.current_template() == DEFAULT_TEMPLATE


def test_dangling_current_id_falls_back():
    store = InMemoryPresetStore()
    store.current_id = "gone"
    assert PresetManager(store).current_id() == DEFAULT_PRESET_ID


def test_emp_preset_uses_hamster_tokens(manager):
    manager.set_current("default-emp")
    assert manager.current_template() == EMP_TEMPLATE
    assert "%SCREENSHOTS_HAM%" in EMP_TEMPLATE
