import logging

from certdeploy.logger import (
    MASK,
    ColoredFormatter,
    SecretMaskingFilter,
    get_logger,
    register_secrets,
    setup_logger,
)


def test_registered_secrets_are_masked(caplog):
    register_secrets("Zq9-masked-secret")

    get_logger().info("signing with %s", "Zq9-masked-secret")

    assert "Zq9-masked-secret" not in caplog.text
    assert MASK in caplog.text


def test_short_values_are_not_registered():
    masking = SecretMaskingFilter(["abc", None, ""])

    assert masking.sanitize("abc") == "abc"


def test_filter_masks_message_and_args():
    masking = SecretMaskingFilter(["hunter2-secret"])
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "key=%s", ("hunter2-secret",), None)

    assert masking.filter(record) is True
    assert record.getMessage() == f"key={MASK}"


def test_structured_helpers(caplog):
    logger = setup_logger(use_colors=False)

    logger.success("done")
    logger.failure("broken")

    assert "[OK] done" in caplog.text
    assert "[FAIL] broken" in caplog.text


def test_verbose_enables_debug():
    assert setup_logger(verbose=True).level == logging.DEBUG
    assert setup_logger().level == logging.INFO


def test_formatter_without_tty_adds_no_colors():
    formatter = ColoredFormatter(fmt="%(levelname)s %(message)s", use_colors=False)
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)

    assert formatter.format(record) == "ERROR boom"


def test_log_file(tmp_path):
    log_file = tmp_path / "deploy.log"
    logger = setup_logger(use_colors=False, log_file=str(log_file))

    logger.info("written to file")
    for handler in logger.handlers:
        handler.flush()

    assert "written to file" in log_file.read_text()
