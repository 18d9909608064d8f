from .exam_session import exam_status
from .helpers import parse_iso

COURSE_SORTS = ('popular', 'rating', 'newest', 'price-low', 'price-high')
LOG_SEVERITIES = ('error', 'warning', 'info', 'success', 'system')

def matches(query, *values):
    query = (query or '').strip().lower()
    if not query: return True
    return any(query in (value or '').lower() for value in values)

def category_id(course):
    category = course.get('categoryId')
    return category.get('_id') if isinstance(category, dict) else category

def _number(value):
    try: return float(value or 0)
    except (TypeError, ValueError): return 0.0

def _timestamp(value):
    parsed = parse_iso(value)
    return parsed.timestamp() if parsed else 0

def filter_courses(courses, query='', category='all', level='all', sort=None):
    result = [c for c in courses
              if matches(query, c.get('title'), c.get('description'))
              and (category in (None, '', 'all') or category_id(c) == category)
              and (level in (None, '', 'all') or c.get('level') == level)]
    if sort == 'popular': result.sort(key=lambda c: _number(c.get('enrolledCount')), reverse=True)
    elif sort == 'rating': result.sort(key=lambda c: _number(c.get('rating')), reverse=True)
    elif sort == 'newest': result.sort(key=lambda c: _timestamp(c.get('createdAt')), reverse=True)
    elif sort == 'price-low': result.sort(key=lambda c: _number(c.get('price')))
    elif sort == 'price-high': result.sort(key=lambda c: _number(c.get('price')), reverse=True)
    return result

def filter_people(people, query=''):
    return [p for p in people if matches(query, p.get('name'), p.get('email'))]

def filter_students_by_course(students, query='', course='all'):
    return [s for s in filter_people(students, query)
            if course in (None, '', 'all') or any(c.get('courseId') == course for c in s.get('enrolledCourses') or [])]

def filter_exams(exams, query='', status='all', now=None):
    return [e for e in exams
            if matches(query, e.get('title'), e.get('courseTitle'))
            and (status in (None, '', 'all') or exam_status(e, now) == status)]

def filter_logs(logs, severity='all'):
    if severity in (None, '', 'all'): return list(logs)
    return [log for log in logs if log.get('severity') == severity]

def severity_counts(logs):
    counts = dict.fromkeys(LOG_SEVERITIES, 0)
    for log in logs:
        if log.get('severity') in counts: counts[log['severity']] += 1
    return counts

def topic_name(question):
    topic = question.get('topic')
    return topic.get('name') if isinstance(topic, dict) else topic

def filter_questions(questions, query=''):
    return [q for q in questions if matches(query, q.get('question'), topic_name(q))]

def practice_sets(exams): return [e for e in exams if e.get('type') == 'practice']

def top_courses(by_course, limit=5):
    """Courses ranked by enrollments for the tutor analytics page."""
    ranked = [{'title': c.get('title', ''), 'students': int(_number(c.get('enrollments'))), 'revenue': _number(c.get('revenue'))} for c in by_course or []]
    return sorted(ranked, key=lambda c: c['students'], reverse=True)[:limit]

def level_distribution(courses):
    levels = {'beginner': 0, 'intermediate': 0, 'advanced': 0}
    for course in courses:
        level = (course.get('level') or 'beginner').lower()
        if level in levels: levels[level] += int(_number(course.get('enrolledCount')))
    return {level: count for level, count in levels.items() if count}
