import json

from faceaccess.core.settings import Settings, clamp_spoof_threshold


def test_defaults_without_config(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.json"))
    assert cfg.SPOOF_THRESHOLD == 0.088
    assert cfg.VERIFICATION_THRESHOLD == 1.9
    assert cfg.DUPLICATE_THRESHOLD == 0.92
    assert cfg.PREPROCESSING_MODE == "fast"
    assert cfg.LIVENESS_CROP_SCALE == 2.7
    assert cfg.EMBEDDINGS_PATH == "face_embeddings.json"


def test_config_file_overrides_and_clamps(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "SPOOF_THRESHOLD": 0.9,
        "PREPROCESSING_MODE": "ACCURATE",
        "WEB_PORT": 8080,
        "UNKNOWN_KEY": 1,
        "lowercase_key": 2,
    }), encoding="utf-8")

    cfg = Settings(config_path=str(path))

    assert cfg.SPOOF_THRESHOLD == 0.5
    assert cfg.PREPROCESSING_MODE == "accurate"
    assert cfg.WEB_PORT == 8080
    assert not hasattr(cfg, "UNKNOWN_KEY")


def test_invalid_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2", encoding="utf-8")
    assert Settings(config_path=str(path)).WEB_PORT == 5000


def test_runtime_spoof_threshold_is_clamped(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.json"))
    assert cfg.set_spoof_threshold(0.0) == 0.001
    assert cfg.SPOOF_THRESHOLD == 0.001
    assert clamp_spoof_threshold(0.3) == 0.3


def test_resolve_path(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.json"))
    assert cfg.resolve_path(str(tmp_path)) == str(tmp_path)
    assert cfg.resolve_path("models/x.tflite").endswith("models/x.tflite")
