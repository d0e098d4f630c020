import json

import cv2
import numpy as np
import pytest

from faceaccess import main as cli
from faceaccess.core.settings import Settings
from faceaccess.core.settings import settings
from faceaccess.data.embedding_store import JsonEmbeddingStore, MemoryEmbeddingStore
from faceaccess.verification.orchestrator import VerificationService

from conftest import FakeDetector, FakeExecutor


@pytest.fixture
def cli_service():
    return VerificationService(FakeDetector(), FakeExecutor(), MemoryEmbeddingStore())


@pytest.fixture
def image_path(tmp_path, face_image):
    path = tmp_path / "face.png"
    cv2.imwrite(str(path), cv2.cvtColor(face_image, cv2.COLOR_RGB2BGR))
    return str(path)


def test_parse_verify_command():
    args = cli.parse_arguments(["--mode", "accurate", "verify", "x.jpg"])
    assert args.command == "verify"
    assert args.image == "x.jpg"
    assert args.mode == "accurate"


def test_apply_arguments_updates_settings(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.json"))
    args = cli.parse_arguments(["--spoof-threshold", "0.9", "--threshold", "1.5",
                                "--db", "other.json", "list"])

    changes = cli.apply_arguments(args, cfg)

    assert cfg.SPOOF_THRESHOLD == 0.5
    assert cfg.VERIFICATION_THRESHOLD == 1.5
    assert cfg.EMBEDDINGS_PATH == "other.json"
    assert len(changes) == 3


def test_enroll_then_verify_exit_codes(cli_service, image_path, capsys):
    assert cli.main(["verify", image_path], service=cli_service) == 1
    assert cli.main(["enroll", "Alice", image_path], service=cli_service) == 0
    capsys.readouterr()

    assert cli.main(["verify", image_path], service=cli_service) == 0
    outcome = json.loads(capsys.readouterr().out)
    assert outcome["decision"] == "granted"
    assert outcome["matched_identity"] == "Alice"


def test_enroll_duplicate_fails(cli_service, image_path):
    assert cli.main(["enroll", "Alice", image_path], service=cli_service) == 0
    assert cli.main(["enroll", "Bob", image_path], service=cli_service) == 1


def test_list_and_delete(cli_service, capsys):
    cli_service.store.save("Alice", np.ones(4))
    assert cli.main(["list"], service=cli_service) == 0
    assert "Alice\t1" in capsys.readouterr().out
    assert cli.main(["delete", "alice"], service=cli_service) == 0
    assert cli.main(["delete", "alice"], service=cli_service) == 1


def test_missing_image_fails(cli_service, tmp_path):
    assert cli.main(["verify", str(tmp_path / "none.png")], service=cli_service) == 1


def test_db_option_replaces_store_of_given_service(cli_service, image_path, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "EMBEDDINGS_PATH", settings.EMBEDDINGS_PATH)
    db = tmp_path / "faces.json"

    assert cli.main(["--db", str(db), "enroll", "Alice", image_path], service=cli_service) == 0

    assert isinstance(cli_service.store, JsonEmbeddingStore)
    with open(db, encoding="utf-8") as f:
        assert list(json.load(f)) == ["Alice"]


def test_built_service_is_closed_after_command(cli_service, monkeypatch):
    monkeypatch.setattr("faceaccess.core.model_factory.create_verification_service",
                        lambda: cli_service)
    assert cli.main(["list"]) == 0
    assert cli_service.executor.closed


def test_given_service_is_left_open(cli_service):
    assert cli.main(["list"], service=cli_service) == 0
    assert not cli_service.executor.closed


def test_serve_refuses_when_web_server_disabled(cli_service, tmp_path, monkeypatch):
    started = []
    monkeypatch.setattr("faceaccess.web.server.setup_management", lambda service: None)
    monkeypatch.setattr("faceaccess.web.server.run_server",
                        lambda host, port: started.append((host, port)))
    cfg = Settings(config_path=str(tmp_path / "missing.json"))
    args = cli.parse_arguments(["serve"])

    cfg.ENABLE_WEB_SERVER = False
    assert cli.cmd_serve(cli_service, args, cfg) == 1
    assert started == []

    cfg.ENABLE_WEB_SERVER = True
    cfg.WEB_PORT = 8080
    assert cli.cmd_serve(cli_service, args, cfg) == 0
    assert started == [(cfg.WEB_HOST, 8080)]
