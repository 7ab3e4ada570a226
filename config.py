import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me-split-ledger-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'split_ledger.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger settings: amounts are stored as integers of the minor unit
    LEDGER_CURRENCY = os.environ.get('LEDGER_CURRENCY', 'INR')
    LEDGER_MINOR_UNIT_DIGITS = int(os.environ.get('LEDGER_MINOR_UNIT_DIGITS', 2))

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(basedir, 'logs')
    LOG_TO_FILE = True


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_TO_FILE = False
