"""
Unit tests for the GraphRAG retriever.

- test_graphrag_retriever.py: search modes, failure policy, options,
  statistics and concurrency
"""
