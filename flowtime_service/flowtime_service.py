#!/usr/bin/env python3
"""
FlowTime - Task & Energy Service
Stores each user's tasks, energy levels, focus sessions and preferences, and
derives schedules and productivity stats from them. Every resource route
requires an access token signed with the shared secret.

Run from the repository root: python -m flowtime_service.flowtime_service
"""

from flask import Flask, request, jsonify, g
from flask_cors import CORS
import datetime
import logging
import math
import sqlite3
import uuid
from collections import defaultdict
from functools import wraps

from config import get_config, configure_logging
from errors import Unauthenticated, ValidationError, NotFound, Conflict, register_error_handlers
from tokens import TokenService, ACCESS
from flowtime_service import planning
from flowtime_service.database import init_db, close_db, query_db, execute_db, insert_db
from flowtime_service.serializers import (
    TASK_FIELDS, ENERGY_FIELDS, SESSION_FIELDS, PREFERENCE_FIELDS,
    utc_now, utc_date, parse_datetime, to_int, to_bool
)

logger = logging.getLogger(__name__)

ENERGY_SOURCES = ('manual', 'wearable', 'predicted')
SESSION_TYPES = ('pomodoro', 'timeboxing', 'deepwork')
OPEN_SESSION_STATUSES = ('active', 'paused')
SUGGESTED_SLOT_OFFSETS_HOURS = (2, 4, 6)

# Inclusive bounds for numeric preferences
PREFERENCE_RANGES = {
    'break_duration': (5, 60),
    'energy_update_freq': (15, 120),
    'preferred_task_time': (15, 180),
}


def elapsed_seconds(since, now):
    return max(int((now - parse_datetime(since)).total_seconds()), 0)


class FlowTimeService:
    def __init__(self, config_class=None, **overrides):
        self.app = Flask(__name__)
        self.app.config.from_object(config_class or get_config())
        self.app.config.update(overrides)
        CORS(self.app)

        self.tokens = TokenService.from_config(self.app.config)

        init_db(self.app.config['FLOWTIME_DATABASE'])
        self.app.teardown_appcontext(close_db)

        register_error_handlers(self.app)
        self.setup_routes()

    def require_auth(self, f):
        """Decorator to require a valid access token"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_header = request.headers.get('Authorization', '')
            token = auth_header[7:].strip() if auth_header.startswith('Bearer ') else ''
            if not token:
                raise Unauthenticated('Missing or invalid authorization header')

            claims = self.tokens.verify(token, token_type=ACCESS)
            g.user_id = claims['user_id']
            return f(*args, **kwargs)
        return decorated_function

    def _json_body(self):
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return data

    def _int_arg(self, name, default, low, high):
        value = to_int(request.args.get(name, default))
        if value is None or not low <= value <= high:
            raise ValidationError(f'{name} must be an integer between {low} and {high}')
        return value

    # Tasks

    def get_task(self, task_id, user_id):
        row = query_db('SELECT * FROM tasks WHERE id = ? AND user_id = ?', (task_id, user_id), one=True)
        if row is None:
            raise NotFound('Task not found')
        return row

    def list_tasks(self, user_id, date=None):
        if date:
            return query_db(
                'SELECT * FROM tasks WHERE user_id = ? AND substr(scheduled_at, 1, 10) = ? '
                'ORDER BY scheduled_at, created_at',
                (user_id, utc_date(date))
            )
        return query_db('SELECT * FROM tasks WHERE user_id = ? ORDER BY scheduled_at, created_at', (user_id,))

    def upcoming_tasks(self, user_id, limit):
        return query_db(
            'SELECT * FROM tasks WHERE user_id = ? AND is_completed = 0 AND scheduled_at > ? '
            'ORDER BY scheduled_at LIMIT ?',
            (user_id, utc_now(), limit)
        )

    def create_task(self, user_id, payload):
        values = TASK_FIELDS.load(payload)
        if not values.get('title'):
            raise ValidationError('Title is required')

        if not values.get('priority'):
            values['priority'] = 'medium'
        if values.get('is_flexible') is None:
            values['is_flexible'] = 1

        now = utc_now()
        values.update({
            'id': str(uuid.uuid4()),
            'user_id': user_id,
            'is_completed': 0,
            'completed_at': None,
            'created_at': now,
            'updated_at': now,
        })
        insert_db('tasks', values)
        return self.get_task(values['id'], user_id)

    def update_task(self, task_id, user_id, payload):
        values = TASK_FIELDS.load(payload)
        if 'title' in values and not values['title']:
            raise ValidationError('Title cannot be empty')
        if 'is_flexible' in values and values['is_flexible'] is None:
            values['is_flexible'] = 1
        if not values:
            return self.get_task(task_id, user_id)

        values['updated_at'] = utc_now()
        assignments = ', '.join(f'{c} = ?' for c in values)
        updated = execute_db(
            f'UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?',
            list(values.values()) + [task_id, user_id]
        )
        if not updated:
            raise NotFound('Task not found')
        return self.get_task(task_id, user_id)

    def toggle_complete(self, task_id, user_id):
        """Flip completion; unknown or foreign tasks are left alone"""
        now = utc_now()
        # SET expressions see the row as it was before the update.
        return execute_db('''
            UPDATE tasks
            SET is_completed = 1 - is_completed,
                completed_at = CASE WHEN is_completed = 1 THEN NULL ELSE ? END,
                updated_at = ?
            WHERE id = ? AND user_id = ?
        ''', (now, now, task_id, user_id))

    def complete_task(self, task_id, user_id):
        """Mark an open task done; unlike toggling, completing twice is an error"""
        now = utc_now()
        updated = execute_db(
            'UPDATE tasks SET is_completed = 1, completed_at = ?, updated_at = ? '
            'WHERE id = ? AND user_id = ? AND is_completed = 0',
            (now, now, task_id, user_id)
        )
        if not updated:
            self.get_task(task_id, user_id)
            raise Conflict('Task already completed')
        return self.get_task(task_id, user_id)

    def reschedule_task(self, task_id, user_id, payload):
        new_time = payload.get('new_time', payload.get('scheduledAt', payload.get('scheduled_at')))
        if new_time in (None, ''):
            raise ValidationError('new_time is required')
        return self.update_task(task_id, user_id, {'scheduled_at': new_time})

    def delete_task(self, task_id, user_id):
        return execute_db('DELETE FROM tasks WHERE id = ? AND user_id = ?', (task_id, user_id))

    # Energy

    def record_energy(self, user_id, payload):
        values = ENERGY_FIELDS.load(payload)
        level = values.get('level')
        if level is None:
            raise ValidationError('Level is required')
        if not 1 <= level <= 100:
            raise ValidationError('Level must be between 1 and 100')

        values['source'] = values.get('source') or 'manual'
        if values['source'] not in ENERGY_SOURCES:
            raise ValidationError(f"Source must be one of: {', '.join(ENERGY_SOURCES)}")

        values.update({
            'id': str(uuid.uuid4()),
            'user_id': user_id,
            'recorded_at': utc_now(),
        })
        insert_db('energy_levels', values)
        return query_db('SELECT * FROM energy_levels WHERE id = ?', (values['id'],), one=True)

    def current_energy(self, user_id):
        row = query_db(
            'SELECT * FROM energy_levels WHERE user_id = ? ORDER BY recorded_at DESC, rowid DESC LIMIT 1',
            (user_id,), one=True
        )
        if row is None:
            return {'level': self.app.config['DEFAULT_ENERGY_LEVEL'], 'recorded_at': None}
        return ENERGY_FIELDS.dump(row)

    def energy_history(self, user_id, days):
        since = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days)
        return query_db(
            'SELECT * FROM energy_levels WHERE user_id = ? AND recorded_at >= ? '
            'ORDER BY recorded_at DESC, rowid DESC',
            (user_id, since.isoformat())
        )

    def energy_patterns(self, user_id):
        return planning.energy_patterns(
            query_db('SELECT level, recorded_at FROM energy_levels WHERE user_id = ?', (user_id,))
        )

    def energy_predictions(self, user_id):
        """One predicted level per UTC hour: recorded average, else the default daily curve"""
        samples = defaultdict(list)
        for row in query_db('SELECT level, recorded_at FROM energy_levels WHERE user_id = ?', (user_id,)):
            samples[parse_datetime(row['recorded_at']).hour].append(row['level'])

        predictions = []
        for hour in range(24):
            if samples[hour]:
                predictions.append(round(sum(samples[hour]) / len(samples[hour])))
            else:
                predictions.append(math.floor(50 + math.sin(hour / 4) * 30))
        return predictions

    # Focus sessions

    def get_session(self, session_id, user_id):
        row = query_db('SELECT * FROM focus_sessions WHERE id = ? AND user_id = ?',
                       (session_id, user_id), one=True)
        if row is None:
            raise NotFound('Session not found')
        return row

    def active_session(self, user_id):
        """The user's open session (active or paused), if any"""
        return query_db(
            "SELECT * FROM focus_sessions WHERE user_id = ? AND status IN ('active', 'paused') "
            "ORDER BY started_at DESC LIMIT 1",
            (user_id,), one=True
        )

    def start_session(self, user_id, payload):
        values = SESSION_FIELDS.load(payload)
        if values.get('session_type') not in SESSION_TYPES:
            raise ValidationError(f"session_type must be one of: {', '.join(SESSION_TYPES)}")

        if values.get('task_id'):
            if self.get_task(values['task_id'], user_id)['is_completed']:
                raise Conflict('Cannot start a session for a completed task')
        else:
            values['task_id'] = None

        if self.active_session(user_id) is not None:
            raise Conflict('An active session already exists')

        now = utc_now()
        values.update({
            'id': str(uuid.uuid4()),
            'user_id': user_id,
            'status': 'active',
            'started_at': now,
            'duration': 0,
            'created_at': now,
            'updated_at': now,
        })
        try:
            insert_db('focus_sessions', values)
        except sqlite3.IntegrityError:
            # lost a race with another start for the same user
            raise Conflict('An active session already exists')

        logger.info(f"Started {values['session_type']} session {values['id']} for user {user_id}")
        return self.get_session(values['id'], user_id)

    def _running_seconds(self, session, now):
        return elapsed_seconds(session['resumed_at'] or session['started_at'], now)

    def pause_session(self, session_id, user_id):
        session = self.get_session(session_id, user_id)
        if session['status'] != 'active':
            raise Conflict('Only active sessions can be paused')

        now = datetime.datetime.now(datetime.timezone.utc)
        updated = execute_db(
            "UPDATE focus_sessions SET status = 'paused', paused_at = ?, duration = duration + ?, "
            "updated_at = ? WHERE id = ? AND user_id = ? AND status = 'active'",
            (now.isoformat(), self._running_seconds(session, now), now.isoformat(), session_id, user_id)
        )
        if not updated:
            raise Conflict('Only active sessions can be paused')
        logger.info(f"Paused session {session_id}")
        return self.get_session(session_id, user_id)

    def resume_session(self, session_id, user_id):
        session = self.get_session(session_id, user_id)
        if session['status'] != 'paused':
            raise Conflict('Only paused sessions can be resumed')

        now = utc_now()
        updated = execute_db(
            "UPDATE focus_sessions SET status = 'active', paused_at = NULL, resumed_at = ?, updated_at = ? "
            "WHERE id = ? AND user_id = ? AND status = 'paused'",
            (now, now, session_id, user_id)
        )
        if not updated:
            raise Conflict('Only paused sessions can be resumed')
        logger.info(f"Resumed session {session_id}")
        return self.get_session(session_id, user_id)

    def end_session(self, session_id, user_id, status='completed'):
        """Close an open session as completed or cancelled, counting any running time"""
        session = self.get_session(session_id, user_id)
        if session['status'] not in OPEN_SESSION_STATUSES:
            raise Conflict(f"Session already {session['status']}")

        now = datetime.datetime.now(datetime.timezone.utc)
        running = self._running_seconds(session, now) if session['status'] == 'active' else 0
        updated = execute_db(
            'UPDATE focus_sessions SET status = ?, ended_at = ?, duration = duration + ?, updated_at = ? '
            'WHERE id = ? AND user_id = ? AND status = ?',
            (status, now.isoformat(), running, now.isoformat(), session_id, user_id, session['status'])
        )
        if not updated:
            raise Conflict('Session changed state, try again')

        session = self.get_session(session_id, user_id)
        logger.info(f"Session {session_id} {status} after {session['duration']}s")
        return session

    def session_history(self, user_id, days):
        since = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days)
        return query_db(
            'SELECT * FROM focus_sessions WHERE user_id = ? AND started_at >= ? ORDER BY started_at DESC',
            (user_id, since.isoformat())
        )

    # Preferences

    def get_preferences(self, user_id):
        """Stored preferences, created with defaults on first access"""
        now = utc_now()
        execute_db(
            'INSERT OR IGNORE INTO user_preferences (user_id, created_at, updated_at) VALUES (?, ?, ?)',
            (user_id, now, now)
        )
        return query_db('SELECT * FROM user_preferences WHERE user_id = ?', (user_id,), one=True)

    def update_preferences(self, user_id, payload):
        values = PREFERENCE_FIELDS.load(payload)
        current = self.get_preferences(user_id)

        for column, (low, high) in PREFERENCE_RANGES.items():
            if column not in values:
                continue
            if values[column] is None or not low <= values[column] <= high:
                raise ValidationError(f'{column} must be between {low} and {high}')
        for column in ('work_hours_start', 'work_hours_end', 'focus_protocol',
                       'notifications_on', 'smart_scheduling'):
            if column in values and values[column] is None:
                raise ValidationError(f'{column} cannot be null')
        if 'focus_protocol' in values and values['focus_protocol'] not in SESSION_TYPES:
            raise ValidationError(f"focus_protocol must be one of: {', '.join(SESSION_TYPES)}")

        start = values.get('work_hours_start', current['work_hours_start'])
        end = values.get('work_hours_end', current['work_hours_end'])
        if start >= end:
            raise ValidationError('work_hours_start must be before work_hours_end')

        if values:
            values['updated_at'] = utc_now()
            assignments = ', '.join(f'{c} = ?' for c in values)
            execute_db(f'UPDATE user_preferences SET {assignments} WHERE user_id = ?',
                       list(values.values()) + [user_id])
            logger.info(f"Updated preferences for user {user_id}: {', '.join(values)}")
        return self.get_preferences(user_id)

    # Schedule

    def week_schedule(self, user_id, today):
        week_start = today - datetime.timedelta(days=today.weekday())
        days = [(week_start + datetime.timedelta(days=offset)).isoformat() for offset in range(7)]
        return week_start.isoformat(), {day: self.list_tasks(user_id, day) for day in days}

    def optimize_schedule(self, user_id, date, respect_current=False):
        """Place the day's flexible tasks into free work-hour slots that best fit predicted energy"""
        day = utc_date(date)
        prefs = self.get_preferences(user_id)

        tasks = [dict(row) for row in self.list_tasks(user_id, day)]
        tasks += [dict(row) for row in query_db(
            'SELECT * FROM tasks WHERE user_id = ? AND scheduled_at IS NULL AND is_completed = 0 '
            'AND is_flexible = 1 ORDER BY created_at',
            (user_id,)
        )]

        movable = [
            t for t in tasks
            if t['is_flexible'] and not t['is_completed'] and not (t['scheduled_at'] and respect_current)
        ]
        movable_ids = {t['id'] for t in movable}

        slots = planning.generate_slots(
            day, prefs['work_hours_start'], prefs['work_hours_end'], prefs['preferred_task_time'])
        for task in tasks:
            if task['id'] not in movable_ids and task['scheduled_at']:
                planning.mark_occupied(slots, parse_datetime(task['scheduled_at']), task['duration'])

        predictions = self.energy_predictions(user_id)
        placed = 0
        for task in sorted(movable, key=planning.scheduling_order):
            slot = planning.find_optimal_slot(task, slots, predictions)
            if slot is None:
                logger.warning(f"No free slot on {day} for task {task['id']}")
                continue

            execute_db('UPDATE tasks SET scheduled_at = ?, updated_at = ? WHERE id = ? AND user_id = ?',
                       (slot.start.isoformat(), utc_now(), task['id'], user_id))
            planning.mark_occupied(slots, slot.start, task['duration'])
            placed += 1

        logger.info(f"Optimized schedule for user {user_id} on {day}: placed {placed} of {len(movable)} tasks")
        return day, self.list_tasks(user_id, day)

    # Stats

    def daily_stats(self, user_id, day):
        sessions = query_db('SELECT * FROM focus_sessions WHERE user_id = ? AND substr(started_at, 1, 10) = ?',
                            (user_id, day))
        levels = query_db('SELECT level FROM energy_levels WHERE user_id = ? AND substr(recorded_at, 1, 10) = ?',
                          (user_id, day))
        return planning.daily_summary(day, self.list_tasks(user_id, day), sessions, levels)

    def weekly_stats(self, user_id, today):
        days = [(today - datetime.timedelta(days=offset)).isoformat() for offset in range(6, -1, -1)]
        return planning.weekly_summary([self.daily_stats(user_id, day) for day in days])

    def insights(self, user_id):
        return planning.insights(
            self.energy_patterns(user_id),
            self.session_history(user_id, 30),
            self.list_tasks(user_id),
            datetime.datetime.now(datetime.timezone.utc),
        )

    def setup_routes(self):
        """Setup API routes"""

        @self.app.route('/health', methods=['GET'])
        def health():
            return jsonify({
                'status': 'healthy',
                'service': 'flowtime',
                'timestamp': utc_now()
            })

        @self.app.route('/tasks', methods=['GET'])
        @self.require_auth
        def list_tasks():
            rows = self.list_tasks(g.user_id, request.args.get('date'))
            logger.info(f"Returning {len(rows)} tasks for user {g.user_id}")
            return jsonify([TASK_FIELDS.dump(row) for row in rows])

        @self.app.route('/tasks', methods=['POST'])
        @self.require_auth
        def create_task():
            task = self.create_task(g.user_id, self._json_body())
            logger.info(f"Created task {task['id']} for user {g.user_id}")
            return jsonify(TASK_FIELDS.dump(task)), 201

        @self.app.route('/tasks/upcoming', methods=['GET'])
        @self.require_auth
        def upcoming_tasks():
            rows = self.upcoming_tasks(g.user_id, self._int_arg('limit', 10, 1, 50))
            return jsonify([TASK_FIELDS.dump(row) for row in rows])

        @self.app.route('/tasks/suggest-slots', methods=['POST'])
        @self.require_auth
        def suggest_slots():
            now = datetime.datetime.now(datetime.timezone.utc)
            return jsonify({
                'time_slots': [
                    (now + datetime.timedelta(hours=offset)).isoformat()
                    for offset in SUGGESTED_SLOT_OFFSETS_HOURS
                ]
            })

        @self.app.route('/tasks/<task_id>', methods=['GET'])
        @self.require_auth
        def get_task(task_id):
            return jsonify(TASK_FIELDS.dump(self.get_task(task_id, g.user_id)))

        @self.app.route('/tasks/<task_id>', methods=['PUT'])
        @self.require_auth
        def update_task(task_id):
            task = self.update_task(task_id, g.user_id, self._json_body())
            return jsonify(TASK_FIELDS.dump(task))

        @self.app.route('/tasks/<task_id>/toggle-complete', methods=['PATCH'])
        @self.require_auth
        def toggle_complete(task_id):
            if self.toggle_complete(task_id, g.user_id):
                logger.info(f"Toggled completion of task {task_id}")
            return jsonify({'success': True})

        @self.app.route('/tasks/<task_id>/complete', methods=['POST'])
        @self.require_auth
        def complete_task(task_id):
            task = self.complete_task(task_id, g.user_id)
            logger.info(f"Completed task {task_id}")
            return jsonify(TASK_FIELDS.dump(task))

        @self.app.route('/tasks/<task_id>/reschedule', methods=['POST'])
        @self.require_auth
        def reschedule_task(task_id):
            task = self.reschedule_task(task_id, g.user_id, self._json_body())
            logger.info(f"Rescheduled task {task_id} to {task['scheduled_at']}")
            return jsonify(TASK_FIELDS.dump(task))

        @self.app.route('/tasks/<task_id>', methods=['DELETE'])
        @self.require_auth
        def delete_task(task_id):
            if self.delete_task(task_id, g.user_id):
                logger.info(f"Deleted task {task_id}")
            return '', 204

        @self.app.route('/energy', methods=['POST'])
        @self.app.route('/energy-levels', methods=['POST'])
        @self.require_auth
        def record_energy():
            record = self.record_energy(g.user_id, self._json_body())
            logger.info(f"Recorded energy level {record['level']} for user {g.user_id}")
            return jsonify(ENERGY_FIELDS.dump(record)), 201

        @self.app.route('/energy/current', methods=['GET'])
        @self.require_auth
        def current_energy():
            return jsonify(self.current_energy(g.user_id))

        @self.app.route('/energy/history', methods=['GET'])
        @self.require_auth
        def energy_history():
            days = to_int(request.args.get('days', 7))
            if days is None or days < 1:
                raise ValidationError('days must be a positive integer')
            return jsonify([ENERGY_FIELDS.dump(row) for row in self.energy_history(g.user_id, days)])

        @self.app.route('/energy/patterns', methods=['GET'])
        @self.require_auth
        def energy_patterns():
            return jsonify({'patterns': self.energy_patterns(g.user_id)})

        @self.app.route('/energy/predictions', methods=['GET'])
        @self.require_auth
        def energy_predictions():
            return jsonify({'predictions': self.energy_predictions(g.user_id)})

        @self.app.route('/sessions/start', methods=['POST'])
        @self.require_auth
        def start_session():
            return jsonify(SESSION_FIELDS.dump(self.start_session(g.user_id, self._json_body()))), 201

        @self.app.route('/sessions/active', methods=['GET'])
        @self.require_auth
        def active_session():
            session = self.active_session(g.user_id)
            if session is None:
                return jsonify({'session': None, 'message': 'No active session'})
            return jsonify({'session': SESSION_FIELDS.dump(session)})

        @self.app.route('/sessions/history', methods=['GET'])
        @self.require_auth
        def session_history():
            days = self._int_arg('days', 7, 1, 30)
            rows = self.session_history(g.user_id, days)
            return jsonify({'sessions': [SESSION_FIELDS.dump(row) for row in rows], 'days': days})

        @self.app.route('/sessions/<session_id>/pause', methods=['POST'])
        @self.require_auth
        def pause_session(session_id):
            return jsonify(SESSION_FIELDS.dump(self.pause_session(session_id, g.user_id)))

        @self.app.route('/sessions/<session_id>/resume', methods=['POST'])
        @self.require_auth
        def resume_session(session_id):
            return jsonify(SESSION_FIELDS.dump(self.resume_session(session_id, g.user_id)))

        @self.app.route('/sessions/<session_id>/complete', methods=['POST'])
        @self.require_auth
        def complete_session(session_id):
            return jsonify(SESSION_FIELDS.dump(self.end_session(session_id, g.user_id, 'completed')))

        @self.app.route('/sessions/<session_id>/cancel', methods=['POST'])
        @self.require_auth
        def cancel_session(session_id):
            return jsonify(SESSION_FIELDS.dump(self.end_session(session_id, g.user_id, 'cancelled')))

        @self.app.route('/preferences', methods=['GET'])
        @self.require_auth
        def get_preferences():
            return jsonify(PREFERENCE_FIELDS.dump(self.get_preferences(g.user_id)))

        @self.app.route('/preferences', methods=['PUT'])
        @self.require_auth
        def update_preferences():
            prefs = self.update_preferences(g.user_id, self._json_body())
            return jsonify(PREFERENCE_FIELDS.dump(prefs))

        @self.app.route('/schedule/today', methods=['GET'])
        @self.require_auth
        def today_schedule():
            today = datetime.datetime.now(datetime.timezone.utc).date().isoformat()
            rows = self.list_tasks(g.user_id, today)
            return jsonify({'date': today, 'tasks': [TASK_FIELDS.dump(row) for row in rows]})

        @self.app.route('/schedule/week', methods=['GET'])
        @self.require_auth
        def week_schedule():
            week_start, schedule = self.week_schedule(
                g.user_id, datetime.datetime.now(datetime.timezone.utc).date())
            return jsonify({
                'week_start': week_start,
                'schedule': {day: [TASK_FIELDS.dump(row) for row in rows] for day, rows in schedule.items()}
            })

        @self.app.route('/schedule/optimize', methods=['POST'])
        @self.require_auth
        def optimize_schedule():
            data = self._json_body()
            if not data.get('date'):
                raise ValidationError('date is required')
            respect_current = bool(to_bool(data.get('respect_current')))
            day, rows = self.optimize_schedule(g.user_id, data['date'], respect_current)
            return jsonify({
                'message': 'Schedule optimized successfully',
                'date': day,
                'tasks': [TASK_FIELDS.dump(row) for row in rows]
            })

        @self.app.route('/stats/daily', methods=['GET'])
        @self.require_auth
        def daily_stats():
            date = request.args.get('date') or datetime.datetime.now(datetime.timezone.utc).isoformat()
            return jsonify(self.daily_stats(g.user_id, utc_date(date)))

        @self.app.route('/stats/weekly', methods=['GET'])
        @self.require_auth
        def weekly_stats():
            return jsonify(self.weekly_stats(g.user_id, datetime.datetime.now(datetime.timezone.utc).date()))

        @self.app.route('/stats/insights', methods=['GET'])
        @self.require_auth
        def insights():
            return jsonify(self.insights(g.user_id))

    def run(self, host=None, port=None, debug=None):
        """Run the FlowTime Service"""
        host = host or self.app.config['HOST']
        port = port or self.app.config['FLOWTIME_SERVICE_PORT']
        logger.info(f"Starting FlowTime Service on {host}:{port}")
        self.app.run(host=host, port=port, debug=self.app.config['DEBUG'] if debug is None else debug)


if __name__ == '__main__':
    configure_logging('flowtime-service')
    FlowTimeService().run()
