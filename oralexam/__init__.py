"""
OralExam Sim - Timed Spoken English Exam Simulator

Administers a multi-section listening and speaking exam: plays prompts,
runs preparation and recording windows, captures responses and scores
them once the run is over.
"""

__version__ = "0.1.0"
__author__ = "OralExam Sim Team"
