"""
Haven CAT: Computerized Adaptive Testing engine for NCLEX-style exams.
"""

__version__ = "0.1.0"
