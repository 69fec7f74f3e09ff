import os
import tempfile


def _env_int(name, default):
    """Integer from the environment; unset or invalid values fall back to default."""
    try:
        return int(os.environ.get(name, ''))
    except ValueError:
        return default


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Database (run history and scheduler job store)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:////data/clickup_backup.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'

    # ClickUp (credentials are provisioned outside the service)
    CLICKUP_API_TOKEN = os.environ.get('CLICKUP_API_TOKEN')
    CLICKUP_TEAM_ID = os.environ.get('CLICKUP_TEAM_ID')
    CLICKUP_API_URL = os.environ.get('CLICKUP_API_URL') or 'https://api.clickup.com/api/v2'
    CLICKUP_TIMEOUT = _env_int('CLICKUP_TIMEOUT', 30)

    # Backup
    BACKUP_RETENTION_DAYS = _env_int('BACKUP_RETENTION_DAYS', 30)
    BACKUP_SERIES_PREFIX = os.environ.get('BACKUP_SERIES_PREFIX') or 'clickup-backup'
    BACKUP_FORMATS = os.environ.get('BACKUP_FORMATS') or 'json,markdown'  # json is always written
    BACKUP_ENRICH_SPRINTS = _env_bool('BACKUP_ENRICH_SPRINTS')
    BACKUP_FETCH_WORKERS = _env_int('BACKUP_FETCH_WORKERS', 1)  # 1 = strictly sequential
    REPORT_LOCALE = os.environ.get('REPORT_LOCALE') or ''  # '' = LC_ALL/LC_TIME/LANG of the host

    # Storage: local, s3 or gdrive
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND') or 'local'
    LOCAL_BACKUP_DIR = os.environ.get('LOCAL_BACKUP_DIR') or '/data/backups'

    S3_BUCKET = os.environ.get('S3_BUCKET')
    S3_KEY_PREFIX = os.environ.get('S3_KEY_PREFIX') or ''
    AWS_REGION = os.environ.get('AWS_REGION') or 'us-east-1'
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')

    GOOGLE_DRIVE_FOLDER_ID = os.environ.get('GOOGLE_DRIVE_FOLDER_ID')
    GOOGLE_DRIVE_CLIENT_ID = os.environ.get('GOOGLE_DRIVE_CLIENT_ID')
    GOOGLE_DRIVE_CLIENT_SECRET = os.environ.get('GOOGLE_DRIVE_CLIENT_SECRET')
    GOOGLE_DRIVE_REFRESH_TOKEN = os.environ.get('GOOGLE_DRIVE_REFRESH_TOKEN')

    # Scheduler
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'
    BACKUP_SCHEDULE_CRON = os.environ.get('BACKUP_SCHEDULE_CRON') or '0 2 * * *'  # Daily at 2 AM


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    SQLALCHEMY_DATABASE_URI = f'sqlite:///{os.path.join(DATA_DIR, "clickup_backup.db")}'
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
    LOCAL_BACKUP_DIR = os.path.join(DATA_DIR, 'backups')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Test configuration: in-memory database, no scheduler, console logging"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_DIR = None
    STORAGE_BACKEND = 'local'
    LOCAL_BACKUP_DIR = os.path.join(tempfile.gettempdir(), 'clickup_backup_tests')
    SCHEDULER_ENABLED = False
    CLICKUP_API_TOKEN = 'test-token'
    CLICKUP_TEAM_ID = 'team-1'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}
