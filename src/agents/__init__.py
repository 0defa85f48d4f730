"""
Pipeline stages for TopicLens.

Contains the modules that turn a raw topic tree into results:
- Tree Normalizer
- Topic Aggregator
- Insight Generator (with the custom question router)
- Delta Engine
- Enhancement Adapter
"""
