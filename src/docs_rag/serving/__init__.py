"""
Serving — FastAPI application exposing retrieval and streamed answers.
"""
