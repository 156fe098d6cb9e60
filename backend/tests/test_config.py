from pathlib import Path

import pytest

from analyst.config import (
    DEFAULT_CONFIG_DIR,
    Settings,
    check_config_dir,
    get_model_family,
    load_model_config,
    load_prompt,
)


def test_bundled_config_dir_is_complete() -> None:
    check_config_dir(Settings(config_dir=DEFAULT_CONFIG_DIR))


def test_missing_config_dir_fails_fast(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="CONFIG_DIR"):
        check_config_dir(Settings(config_dir=tmp_path / "not-installed"))


def test_external_prompt_overrides_builtin(tmp_path: Path) -> None:
    prompt_dir = tmp_path / "analysis"
    prompt_dir.mkdir()
    (prompt_dir / "instructions_gemini-3-pro.md").write_text("Custom prompt", encoding="utf-8")
    settings = Settings(prompts_dir=tmp_path)

    assert load_prompt("analysis", "instructions", "gemini-3-pro-preview", settings) == "Custom prompt"
    assert "football" in load_prompt("analysis", "instructions", "other-model", Settings())


def test_model_config_layers_family_over_defaults() -> None:
    settings = Settings()

    assert get_model_family("gemini-3-pro-preview") == "gemini-3-pro"
    assert load_model_config("gemini-2.5-flash", "analysis", settings) == {
        "max_output_tokens": 8192,
        "thinking_budget": 1024,
    }
    assert load_model_config("unlisted-model", "analysis", settings) == {
        "max_output_tokens": 12000,
        "thinking_budget": 2048,
    }
