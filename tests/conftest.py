import sys
from pathlib import Path

import pytest
import yaml

# Add the repository root to sys.path so tests can import `infra` and `scripts` directly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
# Also add src/ to the path so tests can import `frontend_site` and `deployer_guard`.
SRC = str(ROOT / "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from frontend_site.config import load_config  # noqa: E402

CONFIG_DIR = ROOT / "config"


def base_config_data() -> dict:
    """Raw configuration matching config/prod.yml."""
    with (CONFIG_DIR / "prod.yml").open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


@pytest.fixture
def config_data():
    return base_config_data()


@pytest.fixture
def write_config(tmp_path):
    """Write a config dict to tmp_path/<env>.yml and return the directory."""
    def _write(data: dict, env: str = "test") -> Path:
        with (tmp_path / f"{env}.yml").open("w", encoding="utf-8") as fh:
            yaml.safe_dump(data, fh)
        return tmp_path

    return _write


OVERRIDE_ENV_VARS = (
    "ENVIRONMENT",
    "AWS_ACCOUNT_ID",
    "AWS_REGION",
    "DOMAIN_NAME",
    "HOSTED_ZONE_ID",
    "CERTIFICATE_ARN",
    "CODESTAR_CONNECTION_ARN",
    "CDK_GITHUB_BRANCH",
    "FRONTEND_GITHUB_BRANCH",
    "REQUIRE_BUILD_OUTPUT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clear_override_env(monkeypatch):
    """Keep developer environment variables from leaking into config loading."""
    for name in OVERRIDE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    return load_config("prod", config_dir=CONFIG_DIR)


@pytest.fixture(scope="session")
def prod_config():
    """Checked-in prod configuration, loaded once for the CDK synthesis tests."""
    with pytest.MonkeyPatch.context() as mp:
        for name in OVERRIDE_ENV_VARS:
            mp.delenv(name, raising=False)
        return load_config("prod", config_dir=CONFIG_DIR)
