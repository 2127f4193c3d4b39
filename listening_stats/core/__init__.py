"""
Core modules for listening stats.

This package contains the import pipeline, the aggregations over stored
listening history, and the summary layer built on top of them.
"""
