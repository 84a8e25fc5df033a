from __future__ import annotations

import importlib
import os

import pytest

import config
from conftest import RecordingDispatcher
from jobs import JobService, JobStore, WorkflowRouter
from server import create_app

_MANAGED_KEYS = ("DOTENV_PATH", "N8N_ROUTER_WEBHOOK", "WORKFLOWS", "WORKFLOW_ROUTES", "PUBLIC_BASE_URL")


@pytest.fixture
def reload_config(tmp_path):
    """Reload ``config`` against a scratch environment, then restore it."""

    saved_env = {key: os.environ.pop(key) for key in _MANAGED_KEYS if key in os.environ}
    saved_cwd = os.getcwd()

    def _reload():
        return importlib.reload(config)

    yield _reload

    os.chdir(saved_cwd)
    for key in _MANAGED_KEYS:
        os.environ.pop(key, None)
    os.environ["DOTENV_PATH"] = str(tmp_path / "absent.env")
    importlib.reload(config)
    os.environ.pop("DOTENV_PATH", None)
    os.environ.update(saved_env)


def _write_env(path, **values) -> None:
    path.write_text("".join(f"{key}={value}\n" for key, value in values.items()), encoding="utf-8")


def test_dotenv_file_feeds_config_constants(tmp_path, reload_config):
    env_file = tmp_path / "gateway.env"
    _write_env(
        env_file,
        N8N_ROUTER_WEBHOOK="http://n8n.test/router",
        WORKFLOWS="IMAGE",
        PUBLIC_BASE_URL="https://cinegen.example.com/",
    )
    os.environ["DOTENV_PATH"] = str(env_file)

    settings = reload_config()

    assert settings.N8N_ROUTER_WEBHOOK == "http://n8n.test/router"
    assert settings.WORKFLOWS == ("IMAGE",)
    assert settings.PUBLIC_BASE_URL == "https://cinegen.example.com"
    assert WorkflowRouter.from_config().resolve("IMAGE") == "http://n8n.test/router"


def test_dotenv_in_working_directory_is_found(tmp_path, reload_config):
    _write_env(tmp_path / ".env", WORKFLOW_ROUTES='{"VIDEO": "http://n8n.test/video"}')
    os.chdir(tmp_path)

    reload_config()

    assert WorkflowRouter.from_config().resolve("video") == "http://n8n.test/video"


def test_process_environment_wins_over_dotenv(tmp_path, reload_config):
    env_file = tmp_path / "gateway.env"
    _write_env(env_file, N8N_ROUTER_WEBHOOK="http://n8n.test/from-file")
    os.environ["DOTENV_PATH"] = str(env_file)
    os.environ["N8N_ROUTER_WEBHOOK"] = "http://n8n.test/from-env"

    assert reload_config().N8N_ROUTER_WEBHOOK == "http://n8n.test/from-env"


def test_submission_accepted_with_dotenv_routing(tmp_path, reload_config):
    env_file = tmp_path / "gateway.env"
    _write_env(env_file, N8N_ROUTER_WEBHOOK="http://n8n.test/router")
    os.environ["DOTENV_PATH"] = str(env_file)
    reload_config()

    store = JobStore()
    dispatcher = RecordingDispatcher(store)
    app = create_app(
        JobService(store, WorkflowRouter.from_config(), dispatcher),
        public_base_url="https://cinegen.example.com",
        static_dir=str(tmp_path),
    )

    response = app.test_client().post("/api/generate", json={"workflow": "IMAGE", "prompt": "x"})

    assert response.status_code == 202
    assert dispatcher.calls[0]["endpoint"] == "http://n8n.test/router"
