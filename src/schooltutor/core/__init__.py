"""Core tutoring logic.

Modules:
- models: StudentProfile, ProgressEvent and related records
- errors: error taxonomy
- metrics: pure statistics over progress events
- adaptation: difficulty tiers and knowledge-level updates
- templates: intent classification and offline templates
- generator: tiered content generation (remote, template, static)
- session_store: storage for live tutoring sessions
- session: tutoring session state machine
- analytics: analytics report and scorecard
- progress: progress updates and queries
"""

__all__ = [
    "models",
    "errors",
    "metrics",
    "adaptation",
    "templates",
    "generator",
    "session_store",
    "session",
    "analytics",
    "progress",
]
