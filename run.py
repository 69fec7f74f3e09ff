#!/usr/bin/env python3
"""Run one ClickUp backup and exit; non-zero exit status on failure"""
import os
import sys
from clickup_backup import create_app
from clickup_backup.backup.executor import run_backup

if __name__ == '__main__':
    # One-shot run: never start the background scheduler here
    app = create_app(os.environ.get('FLASK_ENV', 'production'), enable_scheduler=False)

    with app.app_context():
        record = run_backup(trigger='cli')

    if record.status != 'success':
        print(f"Backup failed: {record.error_message}", file=sys.stderr)
        sys.exit(1)
