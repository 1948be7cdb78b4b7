import logging

from clusterize.logging.log import init_logging


def test_init_logging_writes_run_file(tmp_path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="clusterize-test")
    logger.info("registered vmss_0")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent == tmp_path
    assert run_id in log_path.name
    text = log_path.read_text()
    assert f"run {run_id} started" in text
    assert "registered vmss_0" in text

def test_init_logging_reads_dir_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CLUSTERIZE_LOG_DIR", str(tmp_path / "logs"))
    logger, _, log_path = init_logging(name="clusterize-test", verbose=True)
    assert log_path.parent == tmp_path / "logs"
    console = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
    assert console[0].level == logging.DEBUG
