import pytest

from config import Config, ExchangeCredentialsConfig, SimulatedExchangeConfig, load_config

_ENV_VARS = [
    "EXCHANGE_NAME",
    "EXCHANGE_API_KEY",
    "EXCHANGE_API_SECRET_KEY",
    "SIM_MAKER_FEE",
    "SIM_TAKER_FEE",
    "SIM_SLIPPAGE",
    "SIM_INITIAL_BEST_ASK",
    "SIM_INITIAL_BEST_BID",
    "LOG_LEVEL",
    "OBSERVABILITY_DB_PATH",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's local .env out of the test.
    monkeypatch.setattr("config.dotenv.load_dotenv", lambda *a, **k: False)
    return monkeypatch


def test_simulated_config_defaults():
    cfg = SimulatedExchangeConfig()
    assert cfg.maker_fee == 0.0
    assert cfg.taker_fee == 0.0
    assert cfg.slippage == 1.1
    assert cfg.initial_best_ask == 100_000_000.0
    assert cfg.initial_best_bid == 0.0


@pytest.mark.parametrize("fee", [-0.001, 1.0, 2.5])
def test_simulated_config_rejects_bad_fee(fee: float):
    with pytest.raises(ValueError):
        SimulatedExchangeConfig(taker_fee=fee)
    with pytest.raises(ValueError):
        SimulatedExchangeConfig(maker_fee=fee)


def test_simulated_config_rejects_narrowing_slippage():
    with pytest.raises(ValueError):
        SimulatedExchangeConfig(slippage=0.9)


def test_simulated_config_rejects_crossed_initial_prices():
    with pytest.raises(ValueError):
        SimulatedExchangeConfig(initial_best_ask=100.0, initial_best_bid=101.0)


def test_exchange_name_is_normalized():
    assert ExchangeCredentialsConfig(name="  Simulated ").name == "simulated"
    with pytest.raises(ValueError):
        ExchangeCredentialsConfig(name="   ")


def test_log_level_validation():
    assert Config(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValueError):
        Config(log_level="chatty")


def test_load_config_defaults(clean_env: pytest.MonkeyPatch):
    cfg = load_config()
    assert cfg.exchange.name == "simulated"
    assert cfg.exchange.api_key == ""
    assert cfg.simulated == SimulatedExchangeConfig()
    assert cfg.log_level == "INFO"
    assert cfg.observability_db_path is None


def test_load_config_parses_optional_fields(clean_env: pytest.MonkeyPatch):
    clean_env.setenv("EXCHANGE_NAME", "dummy")
    clean_env.setenv("EXCHANGE_API_KEY", "k")
    clean_env.setenv("EXCHANGE_API_SECRET_KEY", "s")
    clean_env.setenv("SIM_MAKER_FEE", "0.0005")
    clean_env.setenv("SIM_TAKER_FEE", "0.001")
    clean_env.setenv("SIM_SLIPPAGE", "1.05")
    clean_env.setenv("SIM_INITIAL_BEST_ASK", "101")
    clean_env.setenv("SIM_INITIAL_BEST_BID", "99")
    clean_env.setenv("LOG_LEVEL", "warning")
    clean_env.setenv("OBSERVABILITY_DB_PATH", "/tmp/events.duckdb")

    cfg = load_config()
    assert cfg.exchange.name == "dummy"
    assert cfg.exchange.api_key == "k"
    assert cfg.exchange.api_secret_key == "s"
    assert cfg.simulated.maker_fee == 0.0005
    assert cfg.simulated.taker_fee == 0.001
    assert cfg.simulated.slippage == 1.05
    assert cfg.simulated.initial_best_ask == 101.0
    assert cfg.simulated.initial_best_bid == 99.0
    assert cfg.log_level == "WARNING"
    assert cfg.observability_db_path == "/tmp/events.duckdb"


def test_load_config_reports_malformed_number(clean_env: pytest.MonkeyPatch):
    clean_env.setenv("SIM_TAKER_FEE", "ten percent")
    with pytest.raises(ValueError, match="SIM_TAKER_FEE"):
        load_config()
