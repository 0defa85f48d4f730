"""
Topic Name Registry.

Session cache of topic display names.
"""
