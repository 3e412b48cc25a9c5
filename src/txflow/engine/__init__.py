"""
Submission engine: lifecycle events, the error taxonomy and the
transaction submission pipeline.
"""
