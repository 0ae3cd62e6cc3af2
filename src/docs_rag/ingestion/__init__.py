"""
Ingestion — corpus walking, paragraph chunking, fingerprinting and batched
embedding into the vector store.

This module is responsible for the ETL-like pipeline that converts a
directory of raw text documents into deduplicated, embedded paragraphs
stored in a vector database.
"""
