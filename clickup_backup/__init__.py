import os
import locale
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()

LOG_FILE_NAME = 'clickup_backup.log'
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 10


def _log_handlers(app, level):
    """Console handler, plus a rotating file handler when LOG_DIR is set."""
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s in %(module)s: %(message)s'))
    handlers = [console]

    log_dir = app.config.get('LOG_DIR')
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        rotating = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS
        )
        rotating.setLevel(level)
        rotating.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        ))
        handlers.append(rotating)

    return handlers


def configure_logging(app):
    """Send package and Flask logs to the console and, outside tests, a log file"""
    level = logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO
    handlers = _log_handlers(app, level)

    logging.basicConfig(level=level, handlers=handlers)
    logging.getLogger('clickup_backup').setLevel(level)

    app.logger.setLevel(level)
    for handler in handlers:
        app.logger.addHandler(handler)

    app.logger.info(f"Logging configured (level: {logging.getLevelName(level)})")


def configure_locale(app):
    """
    Apply the LC_TIME locale used for report dates.

    REPORT_LOCALE names a locale explicitly; empty takes it from the
    environment. An unavailable locale keeps the current one.
    """
    name = app.config.get('REPORT_LOCALE') or ''
    try:
        applied = locale.setlocale(locale.LC_TIME, name)
    except locale.Error as e:
        app.logger.warning(f"Report locale {name or '(environment)'} unavailable, keeping current: {e}")
        return
    app.logger.info(f"Report dates use locale {applied}")


def _scheduler_wanted(app):
    """
    Decide whether this process owns the scheduler.

    Disabled by SCHEDULER_ENABLED=false. Under the debug reloader only the
    child process runs it; otherwise SCHEDULER_WORKER picks the process.
    """
    if not app.config.get('SCHEDULER_ENABLED', True):
        return False
    if app.config.get('DEBUG', False):
        return os.environ.get('WERKZEUG_RUN_MAIN') == 'true'
    return os.environ.get('SCHEDULER_WORKER', 'true').lower() == 'true'


def _prepare_directories(app):
    if app.config.get('STORAGE_BACKEND', 'local') == 'local':
        os.makedirs(app.config['LOCAL_BACKUP_DIR'], exist_ok=True)

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if uri.startswith('sqlite:///'):
        db_path = uri[len('sqlite:///'):]
        if db_path != ':memory:':
            os.makedirs(os.path.dirname(db_path), exist_ok=True)


def create_app(config_name=None, enable_scheduler=None):
    """
    Flask application factory

    Args:
        config_name: Key of clickup_backup.config.config (default: FLASK_ENV or production)
        enable_scheduler: Force the scheduler on/off; None lets
            _scheduler_wanted() decide
    """
    app = Flask(__name__)

    from clickup_backup.config import config
    app.config.from_object(config[config_name or os.environ.get('FLASK_ENV', 'production')])

    configure_logging(app)
    configure_locale(app)
    _prepare_directories(app)

    db.init_app(app)

    from clickup_backup.routes import runs_routes
    app.register_blueprint(runs_routes.bp)

    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    # Run history tables
    from clickup_backup import models  # noqa: F401
    with app.app_context():
        db.create_all()

    if enable_scheduler is None:
        enable_scheduler = _scheduler_wanted(app)

    if not enable_scheduler:
        app.logger.info("Scheduler initialization skipped in this process")
        return app

    from clickup_backup.scheduler import init_scheduler, start_scheduler, stop_scheduler
    import atexit

    app.logger.info("Starting backup scheduler in this process")
    init_scheduler(app)
    start_scheduler()
    atexit.register(stop_scheduler)

    return app
