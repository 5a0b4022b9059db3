"""
SEO analysis of crawled pages.

- rules: per-page rule checks producing findings
- scoring: category scores and the weighted overall score
- recommendations: templated, prioritized actions from issue counts
- engine: AnalysisEngine, which scores a crawl and persists its audit
"""

from app.analysis.engine import AnalysisEngine, AnalysisSummary, AuditResult, audit_pages

__all__ = ["AnalysisEngine", "AnalysisSummary", "AuditResult", "audit_pages"]
