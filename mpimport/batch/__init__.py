"""
Batch import pipeline: source resolution, batching and dispatch orchestration.
"""
