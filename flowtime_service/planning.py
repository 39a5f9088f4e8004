"""
Scheduling and productivity calculations for FlowTime.

Everything here works on plain rows (dicts or sqlite3.Row) and UTC datetimes;
the service module does the reading and writing.
"""

import datetime
import math
from collections import defaultdict

from flowtime_service.serializers import parse_datetime, utc_date

PRIORITY_RANKS = {'low': 1, 'medium': 2, 'high': 3, 'urgent': 4}
DEFAULT_ENERGY_REQUIRED = 3
PEAK_ENERGY_THRESHOLD = 70
WORKDAY_MINUTES = 480
OVERDUE_TASK_WARNING = 5


class TimeSlot:
    def __init__(self, start, minutes):
        self.start = start
        self.end = start + datetime.timedelta(minutes=minutes)
        self.occupied = False

    @property
    def minutes(self):
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, start, end):
        return self.start < end and self.end > start


# Slots and scoring

def generate_slots(day, work_start, work_end, minutes):
    """Back-to-back slots of `minutes` from work_start to work_end (HH:MM, UTC) on a YYYY-MM-DD day"""
    date = datetime.date.fromisoformat(day)
    start = datetime.datetime.combine(
        date, datetime.time.fromisoformat(work_start), tzinfo=datetime.timezone.utc)
    end = datetime.datetime.combine(
        date, datetime.time.fromisoformat(work_end), tzinfo=datetime.timezone.utc)

    slots = []
    current = start
    while current < end:
        slots.append(TimeSlot(current, minutes))
        current += datetime.timedelta(minutes=minutes)
    return slots


def mark_occupied(slots, start, duration):
    # a task without a duration still blocks the slot it starts in
    end = start + datetime.timedelta(minutes=max(duration or 0, 1))
    for slot in slots:
        if slot.overlaps(start, end):
            slot.occupied = True


def slots_needed(duration, slot_minutes):
    if not duration or duration <= 0:
        return 1
    return math.ceil(duration / slot_minutes)


def priority_rank(priority):
    if priority is None:
        return 0
    text = str(priority).strip().lower()
    if text.isdigit():
        return int(text)
    return PRIORITY_RANKS.get(text, 0)


def scheduling_order(task):
    """Sort key: higher priority first, then the more demanding task while energy is fresh"""
    return (-priority_rank(task['priority']), -(task['energy_required'] or 0))


def slot_score(energy_required, hour, energy_level):
    """0..1 fit of a task to a slot: 70% energy match, 30% time-of-day preference"""
    required = energy_required or DEFAULT_ENERGY_REQUIRED
    energy_score = 1.0 - abs(required * 20 - energy_level) / 100.0

    time_score = 0.5
    if required >= 4 and 9 <= hour <= 11:
        time_score = 1.0
    elif required <= 2 and 13 <= hour <= 15:
        time_score = 0.8

    return energy_score * 0.7 + time_score * 0.3


def find_optimal_slot(task, slots, predictions):
    """Best free slot with enough consecutive free slots after it, or None"""
    best, best_score = None, -1.0
    for index, slot in enumerate(slots):
        if slot.occupied:
            continue

        needed = slots_needed(task['duration'], slot.minutes)
        window = slots[index:index + needed]
        if len(window) < needed or any(s.occupied for s in window):
            continue

        score = slot_score(task['energy_required'], slot.start.hour, predictions[slot.start.hour])
        if score > best_score:
            best, best_score = slot, score
    return best


# Energy patterns

def energy_patterns(levels):
    """Average recorded level per (day of week, UTC hour); day 0 is Sunday"""
    samples = defaultdict(list)
    for row in levels:
        recorded = parse_datetime(row['recorded_at'])
        samples[(int(recorded.strftime('%w')), recorded.hour)].append(row['level'])

    return [
        {
            'day_of_week': day,
            'hour_of_day': hour,
            'average_energy': round(sum(values) / len(values), 2),
            'sample_count': len(values),
        }
        for (day, hour), values in sorted(samples.items())
    ]


def peak_energy_hours(patterns, threshold=PEAK_ENERGY_THRESHOLD):
    by_hour = defaultdict(list)
    for pattern in patterns:
        by_hour[pattern['hour_of_day']].append(pattern['average_energy'])
    return sorted(hour for hour, values in by_hour.items() if sum(values) / len(values) >= threshold)


# Statistics

def productivity_score(completion_rate, focus_minutes, average_energy):
    """Percentage built from completion (40%), focus time against a workday (40%) and energy (20%)"""
    return (completion_rate * 0.4 + focus_minutes / WORKDAY_MINUTES * 0.4 + average_energy / 100 * 0.2) * 100


def daily_summary(day, tasks, sessions, levels):
    """Stats for one UTC day from the tasks scheduled, sessions started and levels recorded on it"""
    scheduled = [t for t in tasks if t['scheduled_at']]
    completed = [t for t in tasks if t['completed_at'] and utc_date(t['completed_at']) == day]
    finished = [s for s in sessions if s['status'] == 'completed']

    focus_minutes = sum(s['duration'] // 60 for s in finished)
    average_energy = sum(row['level'] for row in levels) / len(levels) if levels else 0.0
    completion_rate = len(completed) / len(scheduled) if scheduled else 0.0

    seconds_by_hour = defaultdict(int)
    for session in finished:
        seconds_by_hour[parse_datetime(session['started_at']).hour] += session['duration']
    most_productive_hour = 0
    if seconds_by_hour:
        most_productive_hour = max(sorted(seconds_by_hour), key=lambda hour: seconds_by_hour[hour])

    return {
        'date': day,
        'tasks_completed': len(completed),
        'total_focus_time': focus_minutes,
        'average_energy_level': round(average_energy, 2),
        'productivity_score': round(productivity_score(completion_rate, focus_minutes, average_energy), 2),
        'most_productive_hour': most_productive_hour,
        'task_completion_rate': round(completion_rate, 2),
    }


def productivity_trend(scores):
    """'improving', 'declining' or 'stable' comparing the later half of the scores to the earlier"""
    if len(scores) < 2:
        return 'stable'

    half = len(scores) // 2
    earlier = sum(scores[:half]) / half
    later = sum(scores[half:]) / (len(scores) - half)

    if later > earlier * 1.1:
        return 'improving'
    if later < earlier * 0.9:
        return 'declining'
    return 'stable'


def weekly_summary(days):
    """Aggregate daily summaries given oldest first"""
    energies = [d['average_energy_level'] for d in days if d['average_energy_level'] > 0]

    best = days[0]
    for day in days:
        if day['productivity_score'] > best['productivity_score']:
            best = day

    return {
        'daily_stats': days,
        'total_tasks_completed': sum(d['tasks_completed'] for d in days),
        'total_focus_time': sum(d['total_focus_time'] for d in days),
        'average_energy': round(sum(energies) / len(energies), 2) if energies else 0.0,
        'best_day': datetime.date.fromisoformat(best['date']).strftime('%A'),
        'trend': productivity_trend([d['productivity_score'] for d in days]),
    }


def average_session_minutes(sessions):
    durations = [s['duration'] for s in sessions if s['status'] == 'completed']
    if not durations:
        return 0
    return (sum(durations) // len(durations)) // 60


def preferred_session_type(sessions, default='pomodoro'):
    counts = defaultdict(int)
    for session in sessions:
        if session['status'] == 'completed':
            counts[session['session_type']] += 1

    preferred, most = default, 0
    for session_type in sorted(counts):
        if counts[session_type] > most:
            preferred, most = session_type, counts[session_type]
    return preferred


def task_type_completion(tasks):
    totals = defaultdict(int)
    done = defaultdict(int)
    for task in tasks:
        if not task['task_type']:
            continue
        totals[task['task_type']] += 1
        if task['is_completed']:
            done[task['task_type']] += 1
    return {task_type: round(done[task_type] / total, 2) for task_type, total in totals.items()}


def recommendations(peak_hours, sessions, tasks, now):
    advice = []
    if peak_hours:
        hours = ', '.join(f'{hour:02d}:00' for hour in peak_hours)
        advice.append(f'Schedule high-priority tasks during your peak energy hours: {hours}')

    if any(s['status'] == 'completed' for s in sessions):
        minutes = average_session_minutes(sessions)
        if minutes < 25:
            advice.append('Your focus sessions are quite short. Consider using the Pomodoro technique '
                          'to build longer focus periods')
        elif minutes > 90:
            advice.append('Your focus sessions are very long. Remember to take regular breaks to '
                          'maintain energy')

    overdue = [
        t for t in tasks
        if not t['is_completed'] and t['scheduled_at'] and parse_datetime(t['scheduled_at']) < now
    ]
    if len(overdue) > OVERDUE_TASK_WARNING:
        advice.append('You have several overdue tasks. Consider optimizing your schedule to move '
                      'flexible tasks into free slots')
    return advice


def insights(patterns, sessions, tasks, now):
    peak_hours = peak_energy_hours(patterns)
    return {
        'peak_energy_hours': peak_hours,
        'avg_session_duration': average_session_minutes(sessions),
        'preferred_session_type': preferred_session_type(sessions),
        'task_type_completion': task_type_completion(tasks),
        'recommendations': recommendations(peak_hours, sessions, tasks, now),
    }
