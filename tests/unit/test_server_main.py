from unittest.mock import MagicMock

from dbgateway.common.errors import DatabaseConnectionError
from dbgateway.server import main as server_main


def test_main_returns_error_for_missing_config(tmp_path, monkeypatch):
    # Validates CLI failure handling because a bad path must exit non-zero without starting.
    # Arrange
    monkeypatch.setattr(server_main, "configure_logging", MagicMock())
    server_cls = MagicMock()
    monkeypatch.setattr(server_main, "DatabaseServer", server_cls)

    # Act
    code = server_main.main(["--config", str(tmp_path / "absent.yaml")])

    # Assert
    assert code == 1
    server_cls.assert_not_called()


def test_main_applies_overrides_and_stops_on_signal(tmp_path, monkeypatch):
    # Validates the serve loop because the CLI must stop the server after a shutdown signal.
    # Arrange
    path = tmp_path / "gateway.yaml"
    path.write_text("name: local\n")
    monkeypatch.setattr(server_main, "configure_logging", MagicMock())
    server_cls = MagicMock()
    monkeypatch.setattr(server_main, "DatabaseServer", server_cls)

    handlers = {}
    monkeypatch.setattr(server_main.signal, "signal", lambda signum, handler: handlers.setdefault(signum, handler))
    server_cls.return_value.start.side_effect = lambda: None
    server_cls.return_value.server_info.side_effect = lambda: handlers[server_main.signal.SIGTERM](15, None) or {}

    # Act
    code = server_main.main(["--config", str(path), "--host", "127.0.0.1", "--port", "9191"])

    # Assert
    assert code == 0
    config = server_cls.call_args.args[0]
    assert config.api_host == "127.0.0.1"
    assert config.api_port == 9191
    server_cls.return_value.stop.assert_called_once()


def test_main_returns_error_when_start_fails(tmp_path, monkeypatch):
    # Validates start failures because connection errors must surface as a non-zero exit.
    # Arrange
    path = tmp_path / "gateway.yaml"
    path.write_text("name: local\n")
    monkeypatch.setattr(server_main, "configure_logging", MagicMock())
    server_cls = MagicMock()
    server_cls.return_value.start.side_effect = DatabaseConnectionError("refused")
    monkeypatch.setattr(server_main, "DatabaseServer", server_cls)

    # Act
    code = server_main.main(["--config", str(path)])

    # Assert
    assert code == 1
    server_cls.return_value.stop.assert_not_called()
