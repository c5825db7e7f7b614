import pytest

from fakes import ScriptedLLM, analysis_script, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def llm():
    return ScriptedLLM(analysis_script())
