import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///improvboard.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Snapshot persistence (best effort, fire-and-forget)
    PERSIST_STATE = os.environ.get('PERSIST_STATE', '1') == '1'
    LOAD_STATE_ON_BOOT = os.environ.get('LOAD_STATE_ON_BOOT', '1') == '1'
    SEED_DEFAULT_TEMPLATES = os.environ.get('SEED_DEFAULT_TEMPLATES', '1') == '1'
    # Board clock heartbeat (sec). 0 disables.
    CLOCK_TICK_SEC = float(os.environ.get('CLOCK_TICK_SEC', '1'))
    # Allow heartbeat in tests if explicitly enabled
    ENABLE_TIMERS_IN_TESTS = os.environ.get('ENABLE_TIMERS_IN_TESTS') == '1'
    # Per-match countdown resolution (ms)
    MATCH_TIMER_TICK_MS = int(os.environ.get('MATCH_TIMER_TICK_MS', '100'))
    # Where finished-game reports are written
    REPORT_DIR = os.environ.get('REPORT_DIR', 'reports')
    # Remote pacing integration
    INTEROP_SOURCE = os.environ.get('INTEROP_SOURCE', 'mon-pacing')
    INTEROP_AUTH_REQUIRED = os.environ.get('INTEROP_AUTH_REQUIRED', '1') == '1'
    INTEROP_TOKEN_MAX_AGE_SEC = int(os.environ.get('INTEROP_TOKEN_MAX_AGE_SEC', str(12 * 3600)))
    PUBLIC_URL = os.environ.get('PUBLIC_URL')
    # Operator account seeded by `flask db-reset`
    DEFAULT_OPERATOR = os.environ.get('DEFAULT_OPERATOR', 'referee')
    DEFAULT_OPERATOR_PASSWORD = os.environ.get('DEFAULT_OPERATOR_PASSWORD', 'password')
