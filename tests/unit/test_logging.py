import logging

from skysocial.bootstrap import logging as log_bootstrap


def test_configure_logging_installs_file_handler_once(tmp_path, monkeypatch) -> None:
    root = logging.getLogger()
    original = list(root.handlers)
    original_level = root.level
    monkeypatch.setattr(log_bootstrap, "_INITIALIZED", False)
    log_file = tmp_path / "logs" / "skysocial.log"

    try:
        log_bootstrap.configure_logging(level="debug", log_path=log_file)
        log_bootstrap.configure_logging(level="debug", log_path=log_file)
        added = [handler for handler in root.handlers if handler not in original]

        assert len(added) == 2
        assert log_file.parent.is_dir()
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers[:]:
            if handler not in original:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(original_level)
