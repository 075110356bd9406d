import structlog

from pricestream.core.logging import (
    HANDLER,
    QUIET_LOGGERS,
    logging_config,
    renderer,
    shared_processors,
)


def test_production_renders_json_with_flattened_tracebacks():
    # Act
    processors = shared_processors(production=True)

    # Assert
    assert isinstance(renderer(production=True), structlog.processors.JSONRenderer)
    assert processors[-1] is structlog.processors.format_exc_info


def test_development_renders_to_console():
    # Act
    processors = shared_processors(production=False)

    # Assert
    assert isinstance(renderer(production=False), structlog.dev.ConsoleRenderer)
    assert structlog.processors.format_exc_info not in processors


def test_repeated_calls_do_not_accumulate_processors():
    first = shared_processors(production=True)
    second = shared_processors(production=True)

    assert len(first) == len(second)


def test_logging_config_quiets_library_loggers():
    # Act
    config = logging_config("DEBUG", production=False)

    # Assert
    assert config["handlers"][HANDLER]["level"] == "DEBUG"
    assert config["loggers"][""]["level"] == "DEBUG"
    for name in QUIET_LOGGERS:
        assert config["loggers"][name]["level"] == "WARNING"
        assert config["loggers"][name]["handlers"] == [HANDLER]
