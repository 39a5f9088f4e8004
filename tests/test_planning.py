"""
Tests for the scheduling and statistics calculations
"""

import datetime

import pytest

from flowtime_service import planning

UTC = datetime.timezone.utc


def at(hour, minute=0, day=10):
    return datetime.datetime(2025, 3, day, hour, minute, tzinfo=UTC)


def task(**values):
    row = {'id': 't', 'priority': 'medium', 'energy_required': None, 'duration': 60,
           'scheduled_at': None, 'completed_at': None, 'is_completed': 0, 'task_type': None}
    row.update(values)
    return row


def session(started_at, duration, status='completed', session_type='pomodoro'):
    return {'started_at': started_at, 'duration': duration, 'status': status, 'session_type': session_type}


class TestSlots:
    def test_generate_slots_covers_work_hours(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '12:00', 60)
        assert [s.start for s in slots] == [at(9), at(10), at(11)]
        assert slots[-1].end == at(12)
        assert not any(s.occupied for s in slots)

    def test_last_slot_may_run_past_end(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '10:00', 45)
        assert [s.start for s in slots] == [at(9), at(9, 45)]
        assert slots[-1].minutes == 45

    def test_mark_occupied_blocks_every_overlapping_slot(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '13:00', 60)
        planning.mark_occupied(slots, at(9, 30), 90)
        assert [s.occupied for s in slots] == [True, True, False, False]

    def test_task_without_duration_blocks_its_start_slot(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '11:00', 60)
        planning.mark_occupied(slots, at(10), None)
        assert [s.occupied for s in slots] == [False, True]

    @pytest.mark.parametrize('duration, needed', [(None, 1), (0, 1), (30, 1), (60, 1), (61, 2), (180, 3)])
    def test_slots_needed(self, duration, needed):
        assert planning.slots_needed(duration, 60) == needed


class TestScoring:
    @pytest.mark.parametrize('priority, rank', [
        ('low', 1), ('medium', 2), ('High', 3), ('urgent', 4), ('5', 5), (None, 0), ('whenever', 0),
    ])
    def test_priority_rank(self, priority, rank):
        assert planning.priority_rank(priority) == rank

    def test_scheduling_order(self):
        tasks = [
            task(id='a', priority='low', energy_required=5),
            task(id='b', priority='high', energy_required=2),
            task(id='c', priority='high', energy_required=4),
            task(id='d', priority=None),
        ]
        assert [t['id'] for t in sorted(tasks, key=planning.scheduling_order)] == ['c', 'b', 'a', 'd']

    def test_slot_score_prefers_matching_energy(self):
        assert planning.slot_score(5, 12, 100) > planning.slot_score(5, 12, 40)
        assert planning.slot_score(1, 12, 20) > planning.slot_score(1, 12, 80)

    def test_slot_score_time_of_day_bonus(self):
        # demanding work in the morning, light work after lunch
        assert planning.slot_score(5, 10, 100) == pytest.approx(1.0)
        assert planning.slot_score(5, 12, 100) == pytest.approx(0.85)
        assert planning.slot_score(1, 14, 20) == pytest.approx(0.94)
        assert planning.slot_score(3, 10, 60) == pytest.approx(0.85)

    def test_missing_energy_requirement_uses_default(self):
        assert planning.slot_score(None, 12, 60) == planning.slot_score(3, 12, 60)


class TestFindOptimalSlot:
    def predictions(self, peak_hour):
        return [90 if hour == peak_hour else 30 for hour in range(24)]

    def test_picks_best_scoring_free_slot(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '17:00', 60)
        best = planning.find_optimal_slot(task(energy_required=5), slots, self.predictions(14))
        assert best.start == at(14)

    def test_skips_occupied_slots(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '17:00', 60)
        planning.mark_occupied(slots, at(14), 60)
        best = planning.find_optimal_slot(task(energy_required=5), slots, self.predictions(14))
        assert best.start != at(14)

    def test_long_task_needs_consecutive_free_slots(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '13:00', 60)
        planning.mark_occupied(slots, at(10), 60)
        best = planning.find_optimal_slot(task(duration=120, energy_required=5), slots, self.predictions(9))
        assert best.start == at(11)

    def test_ties_keep_earliest_slot(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '12:00', 60)
        best = planning.find_optimal_slot(task(energy_required=3), slots, [60] * 24)
        assert best.start == at(9)

    def test_none_when_nothing_fits(self):
        slots = planning.generate_slots('2025-03-10', '09:00', '11:00', 60)
        assert planning.find_optimal_slot(task(duration=180), slots, [60] * 24) is None
        planning.mark_occupied(slots, at(9), 120)
        assert planning.find_optimal_slot(task(), slots, [60] * 24) is None


class TestEnergyPatterns:
    def test_groups_by_weekday_and_hour(self):
        levels = [
            {'level': 50, 'recorded_at': '2025-03-10T09:10:00+00:00'},
            {'level': 71, 'recorded_at': '2025-03-17T09:50:00Z'},
            {'level': 80, 'recorded_at': '2025-03-15T18:00:00+00:00'},
        ]
        assert planning.energy_patterns(levels) == [
            {'day_of_week': 1, 'hour_of_day': 9, 'average_energy': 60.5, 'sample_count': 2},
            {'day_of_week': 6, 'hour_of_day': 18, 'average_energy': 80.0, 'sample_count': 1},
        ]

    def test_peak_hours_average_across_days(self):
        patterns = [
            {'day_of_week': 1, 'hour_of_day': 9, 'average_energy': 90},
            {'day_of_week': 2, 'hour_of_day': 9, 'average_energy': 50},
            {'day_of_week': 1, 'hour_of_day': 8, 'average_energy': 70},
            {'day_of_week': 1, 'hour_of_day': 20, 'average_energy': 69.9},
        ]
        assert planning.peak_energy_hours(patterns) == [8, 9]
        assert planning.peak_energy_hours([]) == []


class TestDailySummary:
    def test_summary(self):
        tasks = [
            task(scheduled_at='2025-03-10T09:00:00+00:00', is_completed=1,
                 completed_at='2025-03-10T11:00:00+00:00'),
            # completed on another day does not count for this one
            task(scheduled_at='2025-03-10T10:00:00+00:00', is_completed=1,
                 completed_at='2025-03-11T08:00:00+00:00'),
            task(scheduled_at='2025-03-10T12:00:00+00:00'),
            task(scheduled_at='2025-03-10T13:00:00+00:00'),
        ]
        sessions = [
            session('2025-03-10T10:00:00+00:00', 1500),
            session('2025-03-10T15:00:00+00:00', 1500),
            session('2025-03-10T16:00:00+00:00', 7200, status='cancelled'),
        ]
        levels = [{'level': 40}, {'level': 60}]

        summary = planning.daily_summary('2025-03-10', tasks, sessions, levels)
        assert summary == {
            'date': '2025-03-10',
            'tasks_completed': 1,
            'total_focus_time': 50,
            'average_energy_level': 50.0,
            'productivity_score': pytest.approx(24.17, abs=0.001),
            # equal focus time at 10:00 and 15:00
            'most_productive_hour': 10,
            'task_completion_rate': 0.25,
        }

    def test_empty_day(self):
        summary = planning.daily_summary('2025-03-10', [], [], [])
        assert summary['productivity_score'] == 0
        assert summary['average_energy_level'] == 0
        assert summary['task_completion_rate'] == 0

    def test_productivity_score_full_day(self):
        assert planning.productivity_score(1.0, 480, 100) == pytest.approx(100)


class TestWeeklySummary:
    def day(self, date, score, completed=0, focus=0, energy=0.0):
        return {'date': date, 'productivity_score': score, 'tasks_completed': completed,
                'total_focus_time': focus, 'average_energy_level': energy}

    def test_aggregates(self):
        days = [
            self.day('2025-03-10', 10, completed=1, focus=30, energy=60.0),
            self.day('2025-03-11', 40, completed=2, focus=90),
            self.day('2025-03-12', 40, completed=3, focus=10, energy=80.0),
        ]
        summary = planning.weekly_summary(days)
        assert summary['daily_stats'] == days
        assert summary['total_tasks_completed'] == 6
        assert summary['total_focus_time'] == 130
        # days without readings are left out of the average
        assert summary['average_energy'] == 70.0
        # first of the tied best days
        assert summary['best_day'] == 'Tuesday'
        assert summary['trend'] == 'improving'

    @pytest.mark.parametrize('scores, trend', [
        ([50], 'stable'),
        ([50, 50, 52, 48], 'stable'),
        ([50, 50, 56, 56], 'improving'),
        ([50, 50, 44, 44], 'declining'),
        ([0, 0, 0, 0], 'stable'),
    ])
    def test_trend(self, scores, trend):
        assert planning.productivity_trend(scores) == trend


class TestInsights:
    NOW = at(12)

    def test_session_habits(self):
        sessions = [
            session('2025-03-09T09:00:00+00:00', 3000, session_type='deepwork'),
            session('2025-03-09T11:00:00+00:00', 3000, session_type='deepwork'),
            session('2025-03-09T13:00:00+00:00', 1200, session_type='pomodoro'),
            session('2025-03-09T15:00:00+00:00', 9000, status='cancelled', session_type='pomodoro'),
        ]
        assert planning.average_session_minutes(sessions) == 40
        assert planning.preferred_session_type(sessions) == 'deepwork'

    def test_preferred_type_defaults_and_ties(self):
        assert planning.preferred_session_type([]) == 'pomodoro'
        tied = [session('x', 60, session_type='timeboxing'), session('x', 60, session_type='deepwork')]
        assert planning.preferred_session_type(tied) == 'deepwork'

    def test_task_type_completion(self):
        tasks = [
            task(task_type='email', is_completed=1),
            task(task_type='email'),
            task(task_type='email'),
            task(task_type='review', is_completed=1),
            task(task_type=None, is_completed=1),
        ]
        assert planning.task_type_completion(tasks) == {'email': 0.33, 'review': 1.0}

    def test_recommendations(self):
        overdue = [task(scheduled_at='2025-03-10T08:00:00+00:00') for _ in range(6)]
        long_sessions = [session('x', 6000)]

        advice = planning.recommendations([9, 10], long_sessions, overdue, self.NOW)
        assert len(advice) == 3
        assert '09:00, 10:00' in advice[0]
        assert 'regular breaks' in advice[1]
        assert 'overdue' in advice[2]

    def test_no_session_advice_without_completed_sessions(self):
        cancelled = [session('x', 60, status='cancelled')]
        assert planning.recommendations([], cancelled, [], self.NOW) == []

    def test_five_overdue_tasks_is_not_flagged(self):
        overdue = [task(scheduled_at='2025-03-10T08:00:00+00:00') for _ in range(5)]
        done = [task(scheduled_at='2025-03-10T08:00:00+00:00', is_completed=1) for _ in range(3)]
        assert planning.recommendations([], [], overdue + done, self.NOW) == []
