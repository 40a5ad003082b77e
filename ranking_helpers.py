"""
Ranking Aggregator
Grand totals, percentages and competition ranks per academic year, plus the
exam-wise, subject-wise and class-wise views derived from the same rows.
Nothing here is persisted; every call recomputes from the results table.
"""

import logging
from collections import OrderedDict

from sqlalchemy import func

from grading_helpers import FAIL_GRADE, calculate_percentage, classify
from models import Class, GradeEnum, Student, User
from result_models import Result, exam_type_sort_key
from result_query_helpers import build_scoped_predicates, joined_result_query
from scope_helpers import AssignedClassSubjects, OwnRecordsOnly, Unrestricted
from teacher_models import Subject

logger = logging.getLogger(__name__)

TOP_PERFORMERS = 5


def _pct(obtained, possible):
    return round(calculate_percentage(obtained, possible), 2)


def _mean(values):
    return round(sum(values) / len(values), 2) if values else 0.0


class RankingTable:
    """Rankings for one academic year"""

    def __init__(self, academic_year, grand_total_rankings, records):
        self.academic_year = academic_year
        self.grand_total_rankings = grand_total_rankings
        self._records = records
        self.exam_wise_analysis = exam_wise_analysis(records)
        self.subject_wise_performance = subject_wise_performance(records)
        self.class_wise_rankings = class_wise_rankings(grand_total_rankings)

    def __len__(self):
        return len(self.grand_total_rankings)

    def for_student(self, student_id):
        for row in self.grand_total_rankings:
            if row['student_id'] == student_id:
                return row
        return None

    def student_specific_data(self, student_id, class_id):
        my_records = [record for record in self._records if record['student_id'] == student_id]
        classmates = 0
        if class_id is not None:
            classmates = sum(1 for row in self.grand_total_rankings if row['class_id'] == class_id)
        return {
            'myRanking': self.for_student(student_id),
            'examWisePerformance': student_exam_wise(my_records),
            'classmates': classmates,
        }

    def summary(self):
        total = len(self.grand_total_rankings)
        return {
            'totalStudents': total,
            'overallAverage': _mean([row['grand_percentage'] for row in self.grand_total_rankings]),
        }

    def to_dict(self, top_n=None):
        rankings = self.grand_total_rankings
        if top_n:
            rankings = rankings[:top_n]
        return {
            'grandTotalRankings': rankings,
            'examWiseAnalysis': self.exam_wise_analysis,
            'classWiseRankings': self.class_wise_rankings,
            'subjectWisePerformance': self.subject_wise_performance,
        }


def compute_rankings(session, academic_year) -> RankingTable:
    """
    Grand-total standings for every student with results in the year.

    School rank and class rank are standard competition ranks (RANK() OVER)
    on grand total descending. Students without results are absent, not zero.
    """
    totals = session.query(
        Result.student_id.label('student_id'),
        func.sum(Result.obtained_marks).label('grand_total'),
        func.sum(Result.max_marks).label('total_possible'),
        func.count(Result.id).label('total_exams'),
    ).filter(
        Result.academic_year == academic_year
    ).group_by(
        Result.student_id
    ).subquery()

    school_rank = func.rank().over(
        order_by=totals.c.grand_total.desc()
    ).label('school_rank')
    class_rank = func.rank().over(
        partition_by=Student.class_id,
        order_by=totals.c.grand_total.desc()
    ).label('class_rank')

    ranked = session.query(
        totals.c.student_id,
        totals.c.grand_total,
        totals.c.total_possible,
        totals.c.total_exams,
        school_rank,
        class_rank,
    ).join(
        Student, Student.id == totals.c.student_id
    ).subquery()

    # One statement so standings and per-result records come from the same snapshot
    rows = session.query(
        ranked.c.student_id,
        ranked.c.grand_total,
        ranked.c.total_possible,
        ranked.c.total_exams,
        ranked.c.school_rank,
        ranked.c.class_rank,
        Student.class_id,
        Student.roll_number,
        User.first_name,
        User.last_name,
        Class.name.label('class_name'),
        Result.id.label('result_id'),
        Result.subject_id,
        Result.exam_type,
        Result.obtained_marks,
        Result.max_marks,
        Subject.name.label('subject_name'),
        Subject.code.label('subject_code'),
    ).select_from(
        Result
    ).join(
        ranked, ranked.c.student_id == Result.student_id
    ).join(
        Subject, Subject.id == Result.subject_id
    ).join(
        Student, Student.id == Result.student_id
    ).join(
        User, User.id == Student.user_id
    ).outerjoin(
        Class, Class.id == Student.class_id
    ).filter(
        Result.academic_year == academic_year
    ).order_by(
        ranked.c.grand_total.desc(), ranked.c.student_id, Result.id
    ).all()

    rankings = []
    entries = []
    for row in rows:
        entries.append((row.result_id, {
            'student_id': row.student_id,
            'subject_id': row.subject_id,
            'subject_name': row.subject_name,
            'subject_code': row.subject_code,
            'exam_type': row.exam_type,
            'obtained_marks': row.obtained_marks,
            'max_marks': row.max_marks,
        }))
        if rankings and rankings[-1]['student_id'] == row.student_id:
            continue
        grand_total = int(row.grand_total or 0)
        total_possible = int(row.total_possible or 0)
        rankings.append({
            'student_id': row.student_id,
            'student_name': f"{row.first_name or ''} {row.last_name or ''}".strip(),
            'roll_number': row.roll_number,
            'class_id': row.class_id,
            'class_name': row.class_name,
            'grand_total': grand_total,
            'total_possible': total_possible,
            'grand_percentage': _pct(grand_total, total_possible),
            'total_exams': row.total_exams,
            'school_rank': row.school_rank,
            # Unassigned students share no class
            'class_rank': row.class_rank if row.class_id is not None else None,
        })

    # Records keep entry order
    records = [record for _, record in sorted(entries, key=lambda entry: entry[0])]

    logger.info(f"Computed rankings for {academic_year}: {len(rankings)} students, {len(records)} results")
    return RankingTable(academic_year, rankings, records)


def exam_wise_analysis(records):
    groups = OrderedDict()
    for record in records:
        groups.setdefault(record['exam_type'], []).append(record)

    analysis = []
    for exam_type in sorted(groups, key=exam_type_sort_key):
        rows = groups[exam_type]
        grades = [classify(r['obtained_marks'], r['max_marks']) for r in rows]
        total_obtained = sum(r['obtained_marks'] for r in rows)
        total_possible = sum(r['max_marks'] for r in rows)
        analysis.append({
            'exam_type': exam_type,
            'students_appeared': len({r['student_id'] for r in rows}),
            'total_results': len(rows),
            'total_obtained': total_obtained,
            'total_possible': total_possible,
            'percentage': _pct(total_obtained, total_possible),
            'avg_percentage': _mean([calculate_percentage(r['obtained_marks'], r['max_marks']) for r in rows]),
            'min_marks': min(r['obtained_marks'] for r in rows),
            'max_marks': max(r['obtained_marks'] for r in rows),
            'a_plus_count': grades.count(GradeEnum.A_PLUS),
            'a_count': grades.count(GradeEnum.A),
            'fail_count': grades.count(FAIL_GRADE),
        })
    return analysis


def student_exam_wise(records):
    groups = OrderedDict()
    for record in records:
        groups.setdefault(record['exam_type'], []).append(record)

    performance = []
    for exam_type in sorted(groups, key=exam_type_sort_key):
        rows = groups[exam_type]
        total_obtained = sum(r['obtained_marks'] for r in rows)
        total_possible = sum(r['max_marks'] for r in rows)
        performance.append({
            'exam_type': exam_type,
            'total_obtained': total_obtained,
            'total_possible': total_possible,
            'percentage': _pct(total_obtained, total_possible),
            'subjects_count': len(rows),
        })
    return performance


def subject_wise_performance(records):
    groups = {}
    for record in records:
        groups.setdefault(record['subject_id'], []).append(record)

    performance = []
    for subject_id, rows in groups.items():
        performance.append({
            'subject_id': subject_id,
            'subject_name': rows[0]['subject_name'],
            'code': rows[0]['subject_code'],
            'avg_percentage': _mean([calculate_percentage(r['obtained_marks'], r['max_marks']) for r in rows]),
            'total_exams': len(rows),
            'students_appeared': len({r['student_id'] for r in rows}),
            'highest_marks': max(r['obtained_marks'] for r in rows),
            'lowest_marks': min(r['obtained_marks'] for r in rows),
        })
    performance.sort(key=lambda row: (-row['avg_percentage'], row['subject_name'] or '', row['subject_id']))
    return performance


def class_wise_rankings(grand_total_rankings):
    groups = {}
    for row in grand_total_rankings:
        if row['class_id'] is None:
            continue
        groups.setdefault(row['class_id'], []).append(row)

    rankings = []
    for class_id, rows in groups.items():
        totals = [row['grand_total'] for row in rows]
        rankings.append({
            'class_id': class_id,
            'class_name': rows[0]['class_name'],
            'total_students': len(rows),
            'avg_class_total': _mean(totals),
            'highest_total': max(totals),
            'lowest_total': min(totals),
        })
    rankings.sort(key=lambda row: (-row['avg_class_total'], row['class_name'] or '', row['class_id']))
    return rankings


# ===== ROLE STATISTICS FOR RESULT LISTINGS =====

def build_result_stats(session, scope, filters, table=None):
    """
    Summary statistics over every result matching the filters (not just one page).
    Student and principal callers also get figures from the ranking table.
    """
    query = build_scoped_predicates(scope, filters).apply(joined_result_query(
        session,
        Result.student_id,
        Result.subject_id,
        Result.obtained_marks,
        Result.max_marks,
        Student.class_id,
    ))
    rows = query.all()

    percentages = [calculate_percentage(r.obtained_marks, r.max_marks) for r in rows]
    stats = {
        'totalExams': len(rows),
        'averageMarks': round(sum(percentages) / len(percentages)) if percentages else 0,
        'highestMarks': round(max(percentages)) if percentages else 0,
        'lowestMarks': round(min(percentages)) if percentages else 0,
        'totalSubjects': len({r.subject_id for r in rows}),
        'passedExams': sum(1 for r in rows if classify(r.obtained_marks, r.max_marks) != FAIL_GRADE),
    }

    if isinstance(scope, OwnRecordsOnly):
        table = table or compute_rankings(session, filters.academic_year)
        standing = table.for_student(scope.student_id)
        stats.update({
            'schoolRank': standing['school_rank'] if standing else None,
            'classRank': standing['class_rank'] if standing else None,
            'grandTotal': standing['grand_total'] if standing else None,
            'percentage': standing['grand_percentage'] if standing else None,
        })
        return stats

    stats['totalStudents'] = len({r.student_id for r in rows})
    if isinstance(scope, AssignedClassSubjects):
        return stats

    if isinstance(scope, Unrestricted):
        table = table or compute_rankings(session, filters.academic_year)
        stats.update({
            'totalClasses': len({r.class_id for r in rows if r.class_id is not None}),
            'classBreakdown': table.class_wise_rankings,
            'subjectBreakdown': table.subject_wise_performance,
            'topPerformers': table.grand_total_rankings[:TOP_PERFORMERS],
        })
    return stats
