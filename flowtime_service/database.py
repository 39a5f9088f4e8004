# flowtime_service/database.py
import sqlite3
import os
from flask import g, current_app


def get_db():
    """Get the request-scoped database connection"""
    if 'db' not in g:
        g.db = sqlite3.connect(current_app.config['FLOWTIME_DATABASE'])
        g.db.row_factory = sqlite3.Row
    return g.db


def close_db(exception=None):
    """Close the request-scoped database connection"""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db(database_path):
    """Create tables and indexes"""
    directory = os.path.dirname(database_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    db = sqlite3.connect(database_path)

    db.execute('''
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            scheduled_at TEXT,
            duration INTEGER,
            task_type TEXT,
            priority TEXT NOT NULL DEFAULT 'medium',
            energy_required INTEGER,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            is_flexible INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    ''')

    db.execute('CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id)')
    db.execute('CREATE INDEX IF NOT EXISTS idx_tasks_scheduled_at ON tasks(scheduled_at)')

    db.execute('''
        CREATE TABLE IF NOT EXISTS energy_levels (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            level INTEGER NOT NULL CHECK (level >= 1 AND level <= 100),
            factors TEXT,
            source TEXT NOT NULL DEFAULT 'manual' CHECK (source IN ('manual', 'wearable', 'predicted')),
            recorded_at TEXT NOT NULL
        )
    ''')

    db.execute('CREATE INDEX IF NOT EXISTS idx_energy_levels_user_id ON energy_levels(user_id)')
    db.execute('CREATE INDEX IF NOT EXISTS idx_energy_levels_recorded_at ON energy_levels(recorded_at)')

    db.execute('''
        CREATE TABLE IF NOT EXISTS focus_sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            task_id TEXT,
            session_type TEXT NOT NULL CHECK (session_type IN ('pomodoro', 'timeboxing', 'deepwork')),
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'paused', 'completed', 'cancelled')),
            started_at TEXT NOT NULL,
            paused_at TEXT,
            resumed_at TEXT,
            ended_at TEXT,
            duration INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    ''')

    db.execute('CREATE INDEX IF NOT EXISTS idx_focus_sessions_user_id ON focus_sessions(user_id)')
    db.execute('CREATE INDEX IF NOT EXISTS idx_focus_sessions_started_at ON focus_sessions(started_at)')
    # At most one open (active or paused) session per user
    db.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS idx_focus_sessions_open
        ON focus_sessions(user_id) WHERE status IN ('active', 'paused')
    ''')

    db.execute('''
        CREATE TABLE IF NOT EXISTS user_preferences (
            user_id TEXT PRIMARY KEY,
            work_hours_start TEXT NOT NULL DEFAULT '09:00',
            work_hours_end TEXT NOT NULL DEFAULT '17:00',
            break_duration INTEGER NOT NULL DEFAULT 15,
            focus_protocol TEXT NOT NULL DEFAULT 'pomodoro',
            energy_update_freq INTEGER NOT NULL DEFAULT 60,
            notifications_on INTEGER NOT NULL DEFAULT 1,
            smart_scheduling INTEGER NOT NULL DEFAULT 1,
            preferred_task_time INTEGER NOT NULL DEFAULT 60,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    ''')

    db.commit()
    db.close()


def query_db(query, args=(), one=False):
    """Run a query and return all rows, or only the first when one=True"""
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=()):
    """Run a single write statement and commit it"""
    db = get_db()
    try:
        cur = db.execute(query, args)
    except sqlite3.Error:
        db.rollback()
        raise
    db.commit()
    return cur.rowcount


def insert_db(table, values):
    """Insert one row given as {column: value}"""
    columns = list(values)
    return execute_db(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        [values[c] for c in columns]
    )
