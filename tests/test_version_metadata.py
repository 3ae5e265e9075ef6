"""バージョン情報のテスト"""

from importlib.metadata import PackageNotFoundError, version

from typer.testing import CliRunner

import elb_simulator
from elb_simulator.cli.main import app


class TestVersion:
    """__version__ の解決"""

    def test_matches_installed_distribution(self) -> None:
        try:
            installed = version(elb_simulator.DISTRIBUTION_NAME)
        except PackageNotFoundError:
            assert elb_simulator.__version__ == "0+unknown"
        else:
            assert elb_simulator.__version__ == installed

    def test_cli_reports_same_version(self) -> None:
        result = CliRunner().invoke(app, ["version"])
        assert result.exit_code == 0
        assert elb_simulator.__version__ in result.output
