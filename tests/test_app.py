import logging
from logging.handlers import TimedRotatingFileHandler

from flask import Flask

from config import Config, TestConfig
from demo import run_demo
from splitledger import create_app
from splitledger.log_config import setup_logging


def test_demo_walkthrough_ends_with_zero_sum():
    steps = run_demo()

    titles = [title for title, _ in steps]
    assert titles[0].startswith("Asha paid 90")

    after_dinner = steps[0][1]
    assert [d["amount"] for d in after_dinner["simplified_debts"]] == ["30.00", "30.00"]

    for _, summary in steps:
        assert summary["balance_sum"] == "0.00"

    final = {m["name"]: m["balance"] for m in steps[-1][1]["member_balances"]}
    assert final == {"Asha": "-30.00", "Bala": "30.00", "Chitra": "0.00"}


def test_setup_logging_writes_daily_file(tmp_path):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.update(LOG_DIR=str(tmp_path), LOG_LEVEL="debug", TESTING=False)

    root = setup_logging(app)
    try:
        file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert (tmp_path / "split_ledger.log").exists()
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)


def test_create_app_registers_api_blueprints():
    app = create_app(TestConfig)

    assert app.config["TESTING"] is True
    assert {"auth", "groups", "expenses", "settlements", "balances", "activity"} <= set(app.blueprints)

    response = app.test_client().get("/api/groups")
    assert response.status_code == 401
    assert response.get_json() == {"success": False, "error": "unauthorized"}
