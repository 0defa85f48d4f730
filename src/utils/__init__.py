"""
Utility modules for TopicLens.
"""
