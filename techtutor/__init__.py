"""
TechTutor - AI-generated technical courses with progress tracking.

Streamlit application and course core for learning through generated
chapters, quizzes and concept images.

Usage:
    streamlit run app.py
"""

__version__ = "0.1.0"
