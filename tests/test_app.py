import importlib
import logging
from logging.handlers import TimedRotatingFileHandler

import src.app


# Tests module import
def test_import_creates_no_log_directory(tmp_path, monkeypatch):
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("LOG_FILE", str(log_dir / "app.log"))

    app_module = importlib.reload(src.app)

    assert app_module.LOG_FILE == str(log_dir / "app.log")
    assert not log_dir.exists()


# Tests configure_logging
def test_configure_logging(tmp_path, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    log_file = tmp_path / "logs" / "app.log"

    src.app.configure_logging(str(log_file))

    file_handlers = [
        handler for handler in root.handlers if isinstance(handler, TimedRotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert log_file.exists()
    for handler in root.handlers:
        handler.close()
