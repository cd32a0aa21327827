from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from step_pipeline.config.loader import load_settings
from step_pipeline.config.models import PipelineSettings
from step_pipeline.kernel.runner import execute
from step_pipeline.expectations.counters import ExpectationCounter

# Opt-in plugin: add `pytest_plugins = ["step_pipeline.pytest_plugin"]` to a conftest.py.

CONFIG_INI = "step_pipeline_config"


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(CONFIG_INI, "YAML file with step_pipeline settings, relative to the rootdir", default="")


@pytest.fixture(scope="session")
def pipeline_settings(pytestconfig: pytest.Config) -> PipelineSettings:
    # Settings come from the configured YAML file; defaults apply when none is set.
    configured = pytestconfig.getini(CONFIG_INI)
    if not configured:
        return PipelineSettings()
    return load_settings(Path(pytestconfig.rootpath) / str(configured))


@pytest.fixture
def expectations() -> ExpectationCounter:
    return ExpectationCounter()


@pytest.fixture
def run_pipeline(pipeline_settings: PipelineSettings, expectations: ExpectationCounter) -> Callable[..., None]:
    # execute() bound to the session settings and this test's expectation counter.
    def run(*steps: object) -> None:
        execute(*steps, settings=pipeline_settings, counter=expectations)

    return run
