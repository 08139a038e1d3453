"""
Structure tests for the application.

Verifies that all key modules can be imported and have expected structure.
"""


def test_config_import():
    """Test that config module can be imported."""
    from budgetgate.core.config import Settings, settings

    assert Settings is not None
    assert settings.SLI_BACKEND in ("memory", "prometheus")


def test_slo_package_exports():
    """Test that the SLO package exposes the engine components."""
    import budgetgate.core.slo as slo

    for name in slo.__all__:
        assert hasattr(slo, name), name


def test_routers_import():
    """Test that routers can be imported."""
    from budgetgate.routers import health, slo

    assert health.router is not None
    assert slo.router.prefix == "/api/v1/slo"


def test_app_title():
    from budgetgate.main import app

    assert app.title == "Error Budget Release Gate"


def test_cli_parser():
    """Test that every CLI command is registered."""
    from budgetgate.cli import build_parser

    parser = build_parser()
    for argv in (
        ["matrix"],
        ["decide", "--status", "healthy", "--risk", "low"],
        ["evaluate", "--definitions", "d.json", "--events", "e.json", "--service", "api"],
        ["gate", "--definitions", "d.json", "--events", "e.json", "--service", "api", "--risk", "low"],
        ["serve"],
    ):
        assert parser.parse_args(argv).func is not None
