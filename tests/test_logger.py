"""Tests for logging setup and terminal-safe text."""
import logging

import pytest
from rich.logging import RichHandler

from pydeadcode.utils import logger as logger_module
from pydeadcode.utils.logger import sanitize_for_terminal, setup_logging


@pytest.fixture
def restore_root_logger():
    """setup_logging reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("pydeadcode").setLevel(logging.NOTSET)


@pytest.mark.usefixtures("restore_root_logger")
class TestSetupLogging:

    def test_default_level_is_warning(self):
        log = setup_logging()

        assert log.name == "pydeadcode"
        assert log.level == logging.WARNING
        assert [type(h) for h in logging.getLogger().handlers] == [RichHandler]

    def test_verbose_enables_debug(self):
        assert setup_logging(verbose=True).level == logging.DEBUG


class TestSanitize:

    def test_icons_replaced_without_utf8(self, monkeypatch):
        monkeypatch.setattr(logger_module, "is_utf8_capable", lambda: False)
        assert sanitize_for_terminal("✓ No dead code found!") == "[OK] No dead code found!"

    def test_text_kept_with_utf8(self, monkeypatch):
        monkeypatch.setattr(logger_module, "is_utf8_capable", lambda: True)
        assert sanitize_for_terminal("✓ done") == "✓ done"
