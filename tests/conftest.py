from __future__ import annotations

import pytest

from audioenhance.config import Settings
from audioenhance.models.artifact import InputAudio
from audioenhance.services.input_loader import load_input_audio


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def wav_input(tmp_path) -> InputAudio:
    path = tmp_path / "voice.wav"
    path.write_bytes(b"\x00" * (5 * 1024 * 1024))
    return load_input_audio(path)
