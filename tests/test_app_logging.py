from loguru import logger

from photostore.app_logging import init_logging


def test_init_logging_writes_log_file(tmp_path):
    log_dir = tmp_path / "logs"
    init_logging(str(log_dir), level="INFO")
    logger.info("photostore logging check")
    logger.complete()

    files = list(log_dir.glob("photostore_*.log"))
    assert len(files) == 1
    assert "photostore logging check" in files[0].read_text(encoding="utf-8")
    init_logging()
