"""
ExamGuard - exam session & proctoring engine

Seeded question randomization, an authoritative exam timer with
server-side auto-submit, debounced proctoring detectors, live admin
monitoring and violation-aware scoring.
"""

__version__ = "1.0.0"
