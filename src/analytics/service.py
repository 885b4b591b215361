# ABOUTME: Assembles derived analytics from raw records held in the document store.
# ABOUTME: Constructed once with an explicit store and policy; every view is recomputed on demand.

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pandas as pd
from loguru import logger

from src.content.generator import ContentGenerator
from src.storage.document_store import DocumentStore
from src.storage.records import sessions_to_attempts, sessions_to_journey, submission_from_document

from .bloom import analyze_student_bloom
from .class_aggregation import ClassSummary, group_students, summarize_class
from .features import build_performance_summary
from .gaming_detection import analyze_submission, generate_gaming_report
from .insights import StudentInsight, generate_student_insight
from .journey import enrich_journey, validate_journey
from .mastery_aggregation import assess_risk, build_mastery_map, overall_mastery
from .motivation import score_motivation
from .policy import DEFAULT_POLICY, AnalyticsPolicy
from .remediation import RemediationPlan, build_remediation_plans
from .schemas import GamingAnalysis, MotivationScore, StudentAnalytics, Submission

STUDENTS = "students"
SESSIONS = "sessions"
ADAPTIVE_EVENTS = "adaptive_events"
SUBMISSIONS = "submissions"


class AnalyticsService:
    def __init__(self, store: DocumentStore, policy: AnalyticsPolicy = DEFAULT_POLICY):
        self.store = store
        self.policy = policy

    def student_analytics(self, student_id: str) -> StudentAnalytics:
        """
        Build the per-student bundle from stored sessions and adaptive events.

        Raises DocumentNotFoundError for an unknown student. A student with no
        sessions gets an empty mastery map and no performance summary.
        """

        profile = self.store.get(STUDENTS, student_id)
        sessions = [doc for _, doc in self.store.query(SESSIONS, studentId=student_id)]
        events = [doc for _, doc in self.store.query(ADAPTIVE_EVENTS, studentId=student_id)]

        attempts = sessions_to_attempts(student_id, sessions)
        journey = enrich_journey(sessions_to_journey(sessions), events)
        violations = validate_journey(journey)
        if violations:
            logger.warning("Journey for {} has {} invariant violation(s): {}", student_id, len(violations), violations[0])

        mastery = build_mastery_map(attempts)
        performance = build_performance_summary(attempts)
        return StudentAnalytics(
            student_id=student_id,
            name=profile.get("name") or student_id,
            mastery=mastery,
            risk_level=assess_risk(overall_mastery(mastery), performance, self.policy.risk),
            journey=journey,
            performance=performance,
            bloom=analyze_student_bloom(student_id, attempts),
            error_patterns=dict(profile.get("errorPatterns") or {}),
            attempts=attempts,
        )

    def class_students(self, class_id: str) -> List[StudentAnalytics]:
        return [self.student_analytics(doc_id) for doc_id, _ in self.store.query(STUDENTS, classId=class_id)]

    def motivation(self, student: StudentAnalytics) -> MotivationScore:
        return score_motivation(student, self.policy.motivation)

    def class_summary(self, class_id: str) -> ClassSummary:
        return summarize_class(self.class_students(class_id))

    def class_groups(self, class_id: str) -> Dict[str, List[str]]:
        return group_students(self.class_students(class_id))

    def remediation_plans(self, class_id: str) -> List[RemediationPlan]:
        return build_remediation_plans(self.class_students(class_id))

    def submission(self, submission_id: str) -> Submission:
        doc = self.store.get(SUBMISSIONS, submission_id)
        return submission_from_document(doc.get("studentId") or "", doc)

    def gaming_analysis(self, submission_id: str) -> Tuple[Submission, GamingAnalysis]:
        submission = self.submission(submission_id)
        return submission, analyze_submission(submission, self.policy.gaming)

    def gaming_report(self, class_id: Optional[str] = None) -> pd.DataFrame:
        if class_id is None:
            docs = self.store.query(SUBMISSIONS)
        else:
            members = {doc_id for doc_id, _ in self.store.query(STUDENTS, classId=class_id)}
            docs = [(doc_id, doc) for doc_id, doc in self.store.query(SUBMISSIONS) if doc.get("studentId") in members]
        submissions = [submission_from_document(doc.get("studentId") or "", doc) for _, doc in docs]
        return generate_gaming_report(submissions, self.policy.gaming)

    def student_insight(self, student_id: str, generator: Optional[ContentGenerator] = None) -> StudentInsight:
        student = self.student_analytics(student_id)
        return generate_student_insight(student, self.motivation(student), generator)
