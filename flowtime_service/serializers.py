"""
Boundary mapping between FlowTime's snake_case columns and its JSON API.

Each resource declares one FieldMap. Output always uses the external names;
input accepts either the external name or the column name so both client
conventions keep working.
"""

import datetime
import json
from collections import namedtuple

from errors import ValidationError

Field = namedtuple('Field', ['column', 'external', 'dump', 'load', 'read_only'])


def _identity(value):
    return value


def field(column, external=None, dump=None, load=None, read_only=False):
    return Field(column, external or column, dump or _identity, load or _identity, read_only)


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def parse_datetime(value):
    """Parse an ISO-8601 string into an aware UTC datetime; naive values are taken as UTC"""
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f'Invalid timestamp: {value}')
    else:
        raise ValidationError(f'Invalid timestamp: {value!r}')

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def normalize_timestamp(value):
    if value in (None, ''):
        return None
    return parse_datetime(value).isoformat()


def utc_date(value):
    """Calendar day (YYYY-MM-DD) in UTC of a date or datetime string"""
    return parse_datetime(value).date().isoformat()


def to_int(value):
    if value in (None, ''):
        return None
    if isinstance(value, bool):
        raise ValidationError(f'Expected an integer, got {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'Expected an integer, got {value!r}')
        return int(value)
    if not isinstance(value, (int, str)):
        raise ValidationError(f'Expected an integer, got {value!r}')
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f'Expected an integer, got {value!r}')


def to_text(value):
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f'Expected a string, got {value!r}')


def to_bool(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().lower() in ('1', 'true', 'yes')
    elif not isinstance(value, (bool, int, float)):
        raise ValidationError(f'Expected a boolean, got {value!r}')
    return 1 if value else 0


def to_clock(value):
    """Validate a 24-hour HH:MM time of day"""
    if value is None:
        return None
    try:
        if not isinstance(value, str) or len(value) != 5:
            raise ValueError(value)
        datetime.datetime.strptime(value, '%H:%M')
    except ValueError:
        raise ValidationError(f'Expected a time as HH:MM, got {value!r}')
    return value


def dump_json(value):
    return json.loads(value) if value else None


def load_json(value):
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError('factors must be an object')
    return json.dumps(value)


class FieldMap:
    def __init__(self, *fields):
        self.fields = fields

    def dump(self, row):
        """Store row (sqlite3.Row or dict) -> external dict"""
        keys = set(row.keys())
        return {f.external: f.dump(row[f.column]) for f in self.fields if f.column in keys}

    def load(self, payload):
        """External payload -> {column: value} for the writable fields present in it"""
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')

        values = {}
        for f in self.fields:
            if f.read_only:
                continue
            if f.external in payload:
                values[f.column] = f.load(payload[f.external])
            elif f.column in payload:
                values[f.column] = f.load(payload[f.column])
        return values


TASK_FIELDS = FieldMap(
    field('id', read_only=True),
    field('user_id', 'userId', read_only=True),
    field('title', load=to_text),
    field('description', load=to_text),
    field('scheduled_at', 'scheduledAt', load=normalize_timestamp),
    field('duration', load=to_int),
    field('task_type', 'taskType', load=to_text),
    field('priority', load=to_text),
    field('energy_required', 'energyRequired', load=to_int),
    field('is_completed', 'isCompleted', dump=bool, read_only=True),
    field('completed_at', 'completedAt', read_only=True),
    field('is_flexible', 'isFlexible', dump=bool, load=to_bool),
    field('created_at', 'createdAt', read_only=True),
    field('updated_at', 'updatedAt', read_only=True),
)

ENERGY_FIELDS = FieldMap(
    field('id', read_only=True),
    field('user_id', read_only=True),
    field('level', load=to_int),
    field('factors', dump=dump_json, load=load_json),
    field('source', load=to_text),
    field('recorded_at', read_only=True),
)

SESSION_FIELDS = FieldMap(
    field('id', read_only=True),
    field('user_id', read_only=True),
    field('task_id', load=to_text),
    field('session_type', load=to_text),
    field('status', read_only=True),
    field('started_at', read_only=True),
    field('paused_at', read_only=True),
    field('resumed_at', read_only=True),
    field('ended_at', read_only=True),
    field('duration', read_only=True),
    field('created_at', read_only=True),
    field('updated_at', read_only=True),
)

PREFERENCE_FIELDS = FieldMap(
    field('user_id', read_only=True),
    field('work_hours_start', load=to_clock),
    field('work_hours_end', load=to_clock),
    field('break_duration', load=to_int),
    field('focus_protocol', load=to_text),
    field('energy_update_freq', load=to_int),
    field('notifications_on', dump=bool, load=to_bool),
    field('smart_scheduling', dump=bool, load=to_bool),
    field('preferred_task_time', load=to_int),
    field('created_at', read_only=True),
    field('updated_at', read_only=True),
)
