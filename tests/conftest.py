# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the conftest unit so this responsibility stays isolated, testable, and easy to evolve."""

import os
import tempfile
from pathlib import Path

import pytest

from novelsmith.services.llm.llm_logging import llm_logs

_ISOLATED_ENV = (
    "NOVELSMITH_CONFIG",
    "NOVELSMITH_LLM_DUMP",
    "NOVELSMITH_LLM_DUMP_PATH",
    "NOVELSMITH_TOKEN_CEILING",
    "NOVELSMITH_DEFAULT_TEMPERATURE",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_ORG_ID",
    "REPLICATE_API_TOKEN",
    "REPLICATE_BASE_URL",
)


@pytest.fixture(scope="session", autouse=True)
def session_temp_env():
    """Point configuration at an empty temp dir so no real credentials are read."""
    temp_dir = tempfile.TemporaryDirectory(prefix="novelsmith_test_session_")
    originals = {name: os.environ.pop(name, None) for name in _ISOLATED_ENV}
    os.environ["NOVELSMITH_CONFIG"] = str(Path(temp_dir.name) / "machine.json")

    yield

    temp_dir.cleanup()
    for name, value in originals.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def clear_event_log():
    llm_logs.clear()
    yield
    llm_logs.clear()
