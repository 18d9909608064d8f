"""Exam-taking state for the student exam player.

An ExamSession is the linear quiz flow: questions are shown one at a time in
a (possibly shuffled) order, the student answers, clears or marks questions
for review, and the attempt is submitted either by hand or automatically once
the countdown reaches zero. The session is small enough to live in the Flask
session cookie between requests; the exam itself is re-fetched from the API.
"""
import random
from .helpers import parse_iso, utcnow

STATUSES = ('answered', 'marked', 'marked_answered', 'not_answered', 'not_visited')

def option_text(option):
    if isinstance(option, dict): return option.get('text', '')
    return str(option)

def exam_status(exam, now=None):
    if exam.get('isCompleted'): return 'completed'
    if exam.get('isScheduled'):
        now = now or utcnow()
        start, end = parse_iso(exam.get('startDate')), parse_iso(exam.get('endDate'))
        if start and now < start: return 'upcoming'
        if end and now > end: return 'expired'
    return 'available'

class ExamSession:
    def __init__(self, exam_id, question_order, option_orders, duration_seconds, started_at,
                 selections=None, marked=None, visited=None, current=0):
        self.exam_id = exam_id
        self.question_order = list(question_order)
        self.option_orders = [list(o) for o in option_orders]
        self.duration_seconds = int(duration_seconds)
        self.started_at = parse_iso(started_at)
        self.selections = list(selections) if selections is not None else [None] * len(self.question_order)
        self.marked = set(marked or [])
        self.visited = set(visited or [0]) if self.question_order else set()
        self.current = current

    @classmethod
    def start(cls, exam, now=None, rng=None):
        """Begin an attempt, applying the exam's shuffle flags."""
        rng = rng or random.Random()
        questions = exam.get('questions') or []
        order = list(range(len(questions)))
        if exam.get('shuffleQuestions'): rng.shuffle(order)
        option_orders = []
        for index in order:
            options = list(range(len(questions[index].get('options') or [])))
            if exam.get('shuffleOptions'): rng.shuffle(options)
            option_orders.append(options)
        duration = int(float(exam.get('duration') or 0) * 60)
        return cls(exam.get('_id'), order, option_orders, duration, now or utcnow())

    # --- countdown ---
    def elapsed(self, now=None):
        return max(0, int(((now or utcnow()) - self.started_at).total_seconds()))

    @property
    def timed(self): return self.duration_seconds > 0

    def remaining(self, now=None):
        if not self.timed: return None
        return max(0, self.duration_seconds - self.elapsed(now))

    def is_expired(self, now=None):
        return self.timed and self.remaining(now) == 0

    # --- navigation ---
    @property
    def total(self): return len(self.question_order)

    def go_to(self, position):
        if not self.total: return
        self.current = min(max(0, int(position)), self.total - 1)
        self.visited.add(self.current)

    def next(self): self.go_to(self.current + 1)

    def previous(self): self.go_to(self.current - 1)

    # --- answers ---
    def select(self, displayed_option):
        """Record the option shown at ``displayed_option`` for the current question."""
        if not self.total: raise ValueError("This exam has no questions.")
        options = self.option_orders[self.current]
        displayed_option = int(displayed_option)
        if not 0 <= displayed_option < len(options): raise ValueError(f"Option {displayed_option} is out of range.")
        self.selections[self.current] = options[displayed_option]

    def clear(self):
        if self.total: self.selections[self.current] = None

    def toggle_mark(self):
        if not self.total: return
        if self.current in self.marked: self.marked.discard(self.current)
        else: self.marked.add(self.current)

    def status(self, position):
        answered = self.selections[position] is not None
        marked = position in self.marked
        if marked and answered: return 'marked_answered'
        if marked: return 'marked'
        if answered: return 'answered'
        if position in self.visited: return 'not_answered'
        return 'not_visited'

    def status_counts(self):
        counts = dict.fromkeys(STATUSES, 0)
        for position in range(self.total): counts[self.status(position)] += 1
        return counts

    @property
    def answered_count(self): return sum(1 for s in self.selections if s is not None)

    # --- rendering ---
    def current_question(self, questions):
        if not self.total: return None
        question = questions[self.question_order[self.current]]
        options = question.get('options') or []
        selected = self.selections[self.current]
        return {
            'id': question.get('_id'), 'text': question.get('question') or question.get('text', ''),
            'difficulty': question.get('difficulty'), 'number': self.current + 1,
            'options': [{'position': pos, 'text': option_text(options[idx]), 'selected': idx == selected}
                        for pos, idx in enumerate(self.option_orders[self.current])],
            'marked': self.current in self.marked,
        }

    # --- submission ---
    def build_submission(self, questions, now=None):
        """Payload for ``POST /student/exams/<id>/submit`` with answers in original question order."""
        chosen = dict(zip(self.question_order, self.selections))
        answers = []
        for index, question in enumerate(questions):
            selected = chosen.get(index)
            options = question.get('options') or []
            answers.append({
                'questionId': question.get('_id'),
                'selectedOption': selected if selected is not None else -1,
                'selectedOptionText': option_text(options[selected]) if selected is not None and selected < len(options) else None,
            })
        time_spent = self.elapsed(now)
        if self.timed: time_spent = min(time_spent, self.duration_seconds)
        return {'answers': answers, 'timeSpent': time_spent, 'startedAt': self.started_at.isoformat()}

    # --- persistence ---
    def to_dict(self):
        return {
            'exam_id': self.exam_id, 'question_order': self.question_order, 'option_orders': self.option_orders,
            'duration_seconds': self.duration_seconds, 'started_at': self.started_at.isoformat(),
            'selections': self.selections, 'marked': sorted(self.marked), 'visited': sorted(self.visited), 'current': self.current,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(data['exam_id'], data['question_order'], data['option_orders'], data['duration_seconds'], data['started_at'],
                   selections=data.get('selections'), marked=data.get('marked'), visited=data.get('visited'), current=data.get('current', 0))
