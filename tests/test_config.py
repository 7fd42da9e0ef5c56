import pytest

from qabuild.config import load_config


def test_defaults(monkeypatch):
  for name in ('QABUILD_SEED', 'QABUILD_OUT_DIR', 'QABUILD_LOG_FORMAT', 'QABUILD_LOG_PATH'):
    monkeypatch.delenv(name, raising=False)
  cfg = load_config()
  assert cfg.seed is None
  assert cfg.out_dir == '.'
  assert cfg.log_format == 'auto'
  assert cfg.log_path is None


def test_seed_from_env(monkeypatch):
  monkeypatch.setenv('QABUILD_SEED', '17')
  assert load_config().seed == 17


def test_bad_seed(monkeypatch):
  monkeypatch.setenv('QABUILD_SEED', 'abc')
  with pytest.raises(ValueError, match='QABUILD_SEED'):
    load_config()
