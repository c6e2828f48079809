"""Health-metric aggregation and fitness scoring.

This package turns raw physiological, activity, sleep and nutrition samples
into per-metric statistics, normalized domain scores and a composite fitness
assessment with recommendations.
"""
