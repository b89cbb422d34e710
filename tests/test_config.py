import logging

from vitasport_admin.config import Settings
from vitasport_admin.logging_config import LOG_FILENAME, setup_logging


def test_paths_follow_data_dir(settings, tmp_path) -> None:
    data_dir = tmp_path / "data"

    assert settings.data_dir == data_dir
    assert settings.database_path == data_dir / "vitasport.db"
    assert settings.reports_dir.is_dir()
    assert settings.database_url == f"sqlite:///{data_dir / 'vitasport.db'}"


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("VITASPORT_DB", str(tmp_path / "custom.db"))
    monkeypatch.setenv("VITASPORT_PORT", "9100")
    monkeypatch.setenv("VITASPORT_RELOAD", "TRUE")
    monkeypatch.setenv("VITASPORT_LOW_STOCK", "2")

    settings = Settings()

    assert settings.database_path == tmp_path / "custom.db"
    assert settings.port == 9100
    assert settings.reload is True
    assert settings.low_stock_threshold == 2


def test_setup_logging_is_idempotent(settings) -> None:
    setup_logging(settings)
    logger = setup_logging(settings)

    marked = [handler for handler in logger.handlers if getattr(handler, "_vitasport_handler", False)]
    assert len(marked) == 2
    assert (settings.log_dir / LOG_FILENAME).exists()
    assert logging.getLogger("sqlalchemy").level == logging.WARNING
